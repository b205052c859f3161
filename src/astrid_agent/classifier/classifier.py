"""Keyword-table classifier for workflow comments.

Three keyword families are scored by substring hits on the lowercased text.
Precedence is fixed: merge, then changes_requested, then approve.
"""

from __future__ import annotations

import re

from astrid_agent.classifier.models import ActionType, CommentAction

CHANGE_REQUEST_KEYWORDS = (
    "change",
    "fix",
    "update",
    "modify",
    "revise",
    "adjust",
    "improve",
    "please change",
    "can you",
    "could you",
    "needs work",
    "not quite",
    "almost there",
    "few issues",
    "small changes",
    "minor fixes",
    "request changes",
    "changes needed",
    "please update",
)

APPROVAL_KEYWORDS = (
    "approve",
    "approved",
    "lgtm",
    "looks good",
    "go ahead",
    "proceed",
    "yes",
    "perfect",
    "excellent",
    "great work",
    "well done",
    "good to go",
    "ready",
    "ship",
    "deploy",
)

MERGE_KEYWORDS = (
    "merge",
    "ship it",
    "deploy",
    "ready to merge",
    "merge it",
    "looks good to merge",
    "ship this",
    "go live",
    "publish",
)

WEIGHTS = {
    ActionType.MERGE: 0.3,
    ActionType.CHANGES_REQUESTED: 0.25,
    ActionType.APPROVE: 0.3,
}

ACTIONABLE_CONFIDENCE = 0.2

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_CHANGE_PREFIX = re.compile(r"^(change|fix|update|modify)\s+", re.IGNORECASE)


def _score(text: str, keywords: tuple[str, ...]) -> int:
    return sum(1 for keyword in keywords if keyword in text)


def _confidence(action: ActionType, score: int) -> float:
    return min(score * WEIGHTS[action], 1.0)


def _extract_feedback(content: str) -> str:
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(content) if s.strip()]
    matching = [
        sentence
        for sentence in sentences
        if any(keyword in sentence.lower() for keyword in CHANGE_REQUEST_KEYWORDS)
    ]
    return ". ".join(matching)


def classify(text: str) -> CommentAction:
    """Classify a comment into a workflow action.

    Args:
        text: Raw comment content.

    Returns:
        CommentAction with type, confidence and (for change requests) feedback.
    """
    normalized = text.lower().strip()

    changes_score = _score(normalized, CHANGE_REQUEST_KEYWORDS)
    approval_score = _score(normalized, APPROVAL_KEYWORDS)
    merge_score = _score(normalized, MERGE_KEYWORDS)

    if merge_score > 0:
        return CommentAction(ActionType.MERGE, _confidence(ActionType.MERGE, merge_score))

    if changes_score > approval_score and changes_score > 0:
        return CommentAction(
            ActionType.CHANGES_REQUESTED,
            _confidence(ActionType.CHANGES_REQUESTED, changes_score),
            feedback=_extract_feedback(text),
        )

    if approval_score > 0:
        return CommentAction(ActionType.APPROVE, _confidence(ActionType.APPROVE, approval_score))

    return CommentAction(ActionType.NONE, 0.0)


def is_actionable(action: CommentAction) -> bool:
    """Whether the orchestrator should act on a classified comment."""
    return action.type != ActionType.NONE and action.confidence >= ACTIONABLE_CONFIDENCE


def extract_change_request(feedback: str) -> str:
    """Strip a leading imperative verb ("fix ...") from change-request text."""
    return _CHANGE_PREFIX.sub("", feedback).strip()
