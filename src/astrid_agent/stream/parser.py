"""Classify streamed model output into plan, question, progress and PR events.

Output arrives in arbitrary chunks. Chunks are buffered and split on blank
lines; only completed sections are classified. Each category has its own
rate limit, and plans and questions are deduplicated by the first 100
characters of the section so a model repeating itself does not produce
duplicate comments.
"""

from __future__ import annotations

import re
import time

from astrid_agent.stream.models import ContentType, DetectedContent, ParserState

MIN_SECTION_LENGTH = 20
DEDUP_PREFIX_LENGTH = 100

PLAN_WINDOW = 30.0
QUESTION_WINDOW = 60.0
PROGRESS_WINDOW = 15.0

MAX_PLAN_LENGTH = 1000
MAX_PROGRESS_LENGTH = 200
PLAN_TRUNCATION_MARKER = "\n\n*[Plan truncated...]*"

SECTION_SPLIT_RE = re.compile(r"\n\n+")

PLAN_PATTERNS = [
    re.compile(r"^#+\s*(?:Implementation\s+)?Plan\b", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^#+\s*Approach\b", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^\*\*(?:Implementation\s+)?Plan\*\*", re.IGNORECASE | re.MULTILINE),
    # Numbered steps
    re.compile(
        r"^(?:##\s+)?(?:Step\s+)?\d+\.\s+(?:First|Create|Modify|Update|Add|Remove|Fix|Implement)",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(
        r"(?:Here(?:'s| is) (?:my|the) (?:implementation )?plan"
        r"|I(?:'ll| will) (?:start|begin) by"
        r"|Let me (?:outline|plan|describe) (?:my|the) approach)",
        re.IGNORECASE,
    ),
]

QUESTION_PATTERNS = [
    re.compile(r"(?:Do you want|Would you like|Should I|Can I|May I)\s+.+\?", re.IGNORECASE),
    re.compile(r"(?:Please (?:confirm|clarify|specify|let me know))", re.IGNORECASE),
    re.compile(
        r"(?:Before I (?:proceed|continue|start)|I need (?:to know|clarification|more information))",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:Option\s+[1-3A-C]:|Which (?:approach|option|method) (?:do you prefer|should I use)\?)",
        re.IGNORECASE,
    ),
]

PROGRESS_PATTERNS = [
    re.compile(
        r"(?:Creating|Modifying|Updating|Deleting|Reading|Writing)\s+(?:file\s+)?[`']?[\w/.]+[`']?",
        re.IGNORECASE,
    ),
    re.compile(r"(?:Committing|Pushing|Creating branch|Creating PR|Merging)", re.IGNORECASE),
    re.compile(r"(?:Running|Executing)\s+(?:tests|build|lint|predeploy)", re.IGNORECASE),
]

PR_CREATED_RE = re.compile(
    r"(?:PR|Pull Request)\s+(?:created|opened).*?(https://github\.com/[^\s]+/pull/\d+)",
    re.IGNORECASE,
)
PR_URL_RE = re.compile(r"https://github\.com/[^\s/]+/[^\s/]+/pull/\d+")


def _window_open(last: float | None, now: float, window: float) -> bool:
    return last is None or now - last > window


def _matches(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def _plan_excerpt(text: str) -> str:
    if len(text) > MAX_PLAN_LENGTH:
        return text[:MAX_PLAN_LENGTH] + PLAN_TRUNCATION_MARKER
    return text


def _progress_summary(text: str) -> str:
    first_line = text.split("\n", 1)[0]
    if len(first_line) <= MAX_PROGRESS_LENGTH:
        return first_line
    return first_line[:MAX_PROGRESS_LENGTH] + "..."


def parse_chunk(
    text: str, state: ParserState, now: float | None = None
) -> list[DetectedContent]:
    """Feed a chunk of output and return newly detected content.

    Args:
        text: The new chunk.
        state: Session state; mutated in place.
        now: Current time in seconds. Defaults to ``time.time()``.

    Returns:
        Detected items in section order. A section can produce a plan, a
        question and a progress item at once; a PR-created section produces
        only the PR item.
    """
    if now is None:
        now = time.time()

    state.buffer += text
    sections = SECTION_SPLIT_RE.split(state.buffer)
    # The tail is incomplete unless the buffer ends on a blank line
    if state.buffer.endswith("\n\n"):
        state.buffer = ""
    else:
        state.buffer = sections.pop() if sections else ""

    results: list[DetectedContent] = []
    for section in sections:
        trimmed = section.strip()
        if len(trimmed) < MIN_SECTION_LENGTH:
            continue
        key = trimmed[:DEDUP_PREFIX_LENGTH]

        pr_match = PR_CREATED_RE.search(trimmed)
        if pr_match:
            results.append(DetectedContent(ContentType.PR_CREATED, pr_match.group(1), trimmed))
            continue

        if (
            _window_open(state.last_plan_posted, now, PLAN_WINDOW)
            and key not in state.posted_plans
            and _matches(PLAN_PATTERNS, trimmed)
        ):
            state.posted_plans.add(key)
            state.last_plan_posted = now
            results.append(DetectedContent(ContentType.PLAN, _plan_excerpt(trimmed), trimmed))

        if (
            _window_open(state.last_question_posted, now, QUESTION_WINDOW)
            and key not in state.posted_questions
            and _matches(QUESTION_PATTERNS, trimmed)
        ):
            state.posted_questions.add(key)
            state.last_question_posted = now
            results.append(DetectedContent(ContentType.QUESTION, trimmed, trimmed))

        if _window_open(state.last_progress_posted, now, PROGRESS_WINDOW) and _matches(
            PROGRESS_PATTERNS, trimmed
        ):
            state.last_progress_posted = now
            results.append(
                DetectedContent(ContentType.PROGRESS, _progress_summary(trimmed), trimmed)
            )

    return results


def flush(state: ParserState, now: float | None = None) -> list[DetectedContent]:
    """Classify whatever is left in the buffer at the end of a stream."""
    if not state.buffer:
        return []
    return parse_chunk("\n\n", state, now)


def format_content_as_comment(content: DetectedContent, agent_name: str = "Claude") -> str:
    """Render detected content as a markdown comment."""
    match content.type:
        case ContentType.PLAN:
            return (
                f"📋 **{agent_name}'s Plan**\n\n{content.content}\n\n---\n*Planning in progress...*"
            )
        case ContentType.QUESTION:
            return (
                f"❓ **{agent_name} has a question**\n\n{content.content}\n\n---\n"
                "*Please reply to this comment to provide clarification.*"
            )
        case ContentType.PROGRESS:
            return f"⏳ **Progress Update**\n\n{content.content}"
        case ContentType.PR_CREATED:
            return f"🔗 **Pull Request Created**\n\n[{content.content}]({content.content})"
        case ContentType.ERROR:
            return f"⚠️ **Issue Detected**\n\n{content.content}"
    return content.content


def extract_pr_url(text: str) -> str | None:
    """Find the first GitHub pull request URL in text."""
    match = PR_URL_RE.search(text)
    return match.group(0) if match else None
