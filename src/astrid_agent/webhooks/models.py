"""Webhook payload models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SessionEvent = Literal[
    "session.started",
    "session.completed",
    "session.waiting_input",
    "session.error",
    "session.progress",
]


class CallbackData(BaseModel):
    """Optional details attached to a session event."""

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    summary: str | None = None
    files: list[str] | None = None
    pr_url: str | None = Field(default=None, alias="prUrl")
    error: str | None = None
    question: str | None = None
    options: list[str] | None = None
    changes: list[str] | None = None
    diff: str | None = None


class CallbackPayload(BaseModel):
    """Body of a remote executor callback (and of outbound notifications)."""

    model_config = ConfigDict(populate_by_name=True)

    event: SessionEvent
    timestamp: str
    session_id: str = Field(alias="sessionId")
    task_id: str = Field(alias="taskId")
    data: CallbackData | None = None

    def to_wire(self) -> dict:
        """JSON-ready dict using the camelCase wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of an outbound webhook delivery."""

    success: bool
    attempts: int
    status_code: int | None = None
    error: str | None = None
