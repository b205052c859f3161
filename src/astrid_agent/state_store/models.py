"""SQLAlchemy models for State Store."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from astrid_agent.state_store.metadata import WorkflowMetadata, parse_metadata


class WorkflowStatus(StrEnum):
    """Workflow status enum."""

    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    TESTING = "testing"
    READY_TO_MERGE = "ready_to_merge"
    COMPLETED = "completed"
    FAILED = "failed"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Task(Base):
    """Task model - the unit of work a human assigns."""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    list_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    creator_id: Mapped[str] = mapped_column(String(100), nullable=False)
    assignee_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    def __init__(
        self,
        title: str,
        creator_id: str,
        id: str | None = None,
        description: str | None = None,
        list_description: str | None = None,
        assignee_id: str | None = None,
        completed: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.title = title
        self.creator_id = creator_id
        self.description = description
        self.list_description = list_description
        self.assignee_id = assignee_id
        self.completed = completed

    def __repr__(self) -> str:
        return f"<Task(id={self.id!r}, title={self.title!r}, completed={self.completed!r})>"


class Comment(Base):
    """Comment model - human and agent messages on a task."""

    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id"), nullable=False)
    author_id: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    def __init__(
        self,
        task_id: str,
        author_id: str,
        content: str,
        id: str | None = None,
        created_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.task_id = task_id
        self.author_id = author_id
        self.content = content
        # Sub-second precision keeps "most recent" ordering stable
        self.created_at = created_at if created_at is not None else datetime.now()

    def __repr__(self) -> str:
        return f"<Comment(id={self.id!r}, task_id={self.task_id!r}, author_id={self.author_id!r})>"


class Workflow(Base):
    """Workflow model - orchestration state for exactly one task."""

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    task_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tasks.id"), nullable=False, unique=True
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    ai_service: Mapped[str] = mapped_column(String(30), nullable=False)
    deployment_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        task_id: str,
        ai_service: str,
        id: str | None = None,
        status: str | None = None,
        deployment_url: str | None = None,
        metadata_json: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.task_id = task_id
        self.ai_service = ai_service
        self.status = status if status is not None else WorkflowStatus.PENDING.value
        self.deployment_url = deployment_url
        self.metadata_json = metadata_json if metadata_json is not None else {}

    @property
    def workflow_status(self) -> WorkflowStatus:
        """Get status as WorkflowStatus enum."""
        return WorkflowStatus(self.status)

    @workflow_status.setter
    def workflow_status(self, value: WorkflowStatus) -> None:
        """Set status from WorkflowStatus enum."""
        self.status = value.value

    @property
    def meta(self) -> WorkflowMetadata:
        """Metadata as a typed model."""
        return parse_metadata(self.metadata_json)

    def __repr__(self) -> str:
        return f"<Workflow(id={self.id!r}, task_id={self.task_id!r}, status={self.status!r})>"
