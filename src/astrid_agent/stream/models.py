"""Data models for the Output Stream Classifier."""

from dataclasses import dataclass, field
from enum import StrEnum


class ContentType(StrEnum):
    """Kinds of human-facing content detected in model output."""

    PLAN = "plan"
    QUESTION = "question"
    PROGRESS = "progress"
    ERROR = "error"
    PR_CREATED = "pr_created"


@dataclass
class DetectedContent:
    """A section of output worth surfacing to the human.

    Attributes:
        type: What kind of content was detected.
        content: Display text (truncated or summarized).
        raw: The full section the content came from.
    """

    type: ContentType
    content: str
    raw: str | None = None


@dataclass
class ParserState:
    """Per-session buffer, rate-limit clocks and dedup sets.

    ``last_*_posted`` are None until the first event of that kind.
    """

    buffer: str = ""
    last_plan_posted: float | None = None
    last_progress_posted: float | None = None
    last_question_posted: float | None = None
    posted_plans: set[str] = field(default_factory=set)
    posted_questions: set[str] = field(default_factory=set)
