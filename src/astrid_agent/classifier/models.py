"""Data models for the Comment Action Classifier."""

from dataclasses import dataclass
from enum import StrEnum


class ActionType(StrEnum):
    """Intent expressed by a human comment.

    RETRY is never produced by ``classify``; the orchestrator assigns it to any
    creator comment on a failed workflow.
    """

    APPROVE = "approve"
    MERGE = "merge"
    CHANGES_REQUESTED = "changes_requested"
    RETRY = "retry"
    NONE = "none"


@dataclass(frozen=True)
class CommentAction:
    """Classified comment intent.

    Transient: produced by ``classify`` and consumed once by the orchestrator.

    Attributes:
        type: The detected action.
        confidence: Score in the range 0..1.
        feedback: Change-request sentences, only for CHANGES_REQUESTED.
    """

    type: ActionType
    confidence: float
    feedback: str | None = None
