"""Typed workflow metadata.

The ``metadata`` JSON column holds one of several shapes depending on where
the workflow is in its lifecycle. Each shape is a pydantic model tagged with a
``kind`` field. Rows written before the tag existed are recognised by their
keys; anything unrecognised is preserved verbatim as :class:`LegacyMetadata`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


def utcnow() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


class _MetadataBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = 1

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSON column."""
        return self.model_dump(mode="json", exclude_none=True)


class PlanMetadata(_MetadataBase):
    """Plan produced and waiting for human approval."""

    kind: Literal["plan"] = "plan"
    plan: dict[str, Any]
    awaiting_approval_since: datetime = Field(default_factory=utcnow)
    retried_with_feedback: bool = False
    # Set when changes were pushed before approval
    revision_feedback: str | None = None
    branch_name: str | None = None
    pr_url: str | None = None


class FailureMetadata(_MetadataBase):
    """A step failed."""

    kind: Literal["failure"] = "failure"
    error: str
    step: str
    timestamp: datetime = Field(default_factory=utcnow)
    user_feedback: str | None = None
    previous_error: str | None = None
    created_for_retry: bool = False


class RetryMetadata(_MetadataBase):
    """A failed workflow is being retried with human feedback."""

    kind: Literal["retry"] = "retry"
    previous_error: str
    failed_step: str
    user_feedback: str
    retry_triggered_at: datetime = Field(default_factory=utcnow)
    retry_comment_id: str | None = None


class TestingMetadata(_MetadataBase):
    """Changes pushed; waiting for checks and a merge decision."""

    __test__ = False

    kind: Literal["testing"] = "testing"
    plan: dict[str, Any]
    branch_name: str
    commit_message: str
    pr_url: str | None = None
    github_actions_status: str | None = None
    usage: dict[str, Any] | None = None
    revision_feedback: str | None = None


class CompletionMetadata(_MetadataBase):
    """Workflow finished by a merge decision."""

    kind: Literal["completion"] = "completion"
    merged_by: str
    merged_at: datetime = Field(default_factory=utcnow)
    pr_url: str | None = None


class LegacyMetadata(_MetadataBase):
    """Unrecognised metadata, kept as-is."""

    kind: Literal["legacy"] = "legacy"
    raw: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return dict(self.raw)


WorkflowMetadata = Annotated[
    PlanMetadata
    | FailureMetadata
    | RetryMetadata
    | TestingMetadata
    | CompletionMetadata
    | LegacyMetadata,
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[WorkflowMetadata] = TypeAdapter(WorkflowMetadata)


def _infer_kind(data: dict[str, Any]) -> str | None:
    # Untagged rows, checked from most to least specific key
    if "merged_at" in data or "merged_by" in data:
        return "completion"
    if "retry_triggered_at" in data:
        return "retry"
    if "error" in data and "step" in data:
        return "failure"
    if "branch_name" in data:
        return "testing"
    if "plan" in data:
        return "plan"
    return None


def parse_metadata(data: dict[str, Any] | None) -> WorkflowMetadata:
    """Turn a stored metadata dict into a typed model.

    Never raises: shapes that cannot be validated become ``LegacyMetadata``.

    Args:
        data: The raw JSON column value.

    Returns:
        One of the metadata models.
    """
    if not data:
        return LegacyMetadata()
    if not isinstance(data, dict):
        return LegacyMetadata(raw={"value": data})

    candidate = dict(data)
    if "kind" not in candidate:
        kind = _infer_kind(candidate)
        if kind is None:
            return LegacyMetadata(raw=dict(data))
        candidate["kind"] = kind

    try:
        return _adapter.validate_python(candidate)
    except ValidationError:
        return LegacyMetadata(raw=dict(data))
