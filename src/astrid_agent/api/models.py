"""Pydantic models for REST API."""

from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


# Workflow models


class WorkflowStart(BaseModel):
    """Request model for starting a workflow."""

    ai_service: Literal["claude", "openai", "gemini"] | None = None


class WorkflowResponse(BaseModel):
    """Response model for a workflow."""

    id: str
    task_id: str
    status: str
    ai_service: str
    deployment_url: str | None
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime


def workflow_to_response(workflow: Any) -> WorkflowResponse:
    """Convert a Workflow model to WorkflowResponse."""
    return WorkflowResponse(
        id=workflow.id,
        task_id=workflow.task_id,
        status=workflow.status,
        ai_service=workflow.ai_service,
        deployment_url=workflow.deployment_url,
        metadata=workflow.metadata_json,
        created_at=workflow.created_at,
        updated_at=workflow.updated_at,
    )


class ChecksResponse(BaseModel):
    """Response model for a CI checks poll."""

    ci_status: str | None
    workflow_status: str


# Comment models


class CommentCreate(BaseModel):
    """Request model for adding a comment to a task."""

    author_id: str = Field(..., min_length=1, max_length=100)
    content: str = Field(..., min_length=1, max_length=20_000)


class CommentResponse(BaseModel):
    """Response model for a comment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    author_id: str
    content: str
    created_at: datetime


def comment_to_response(comment: Any) -> CommentResponse:
    """Convert a Comment model to CommentResponse."""
    return CommentResponse.model_validate(comment)


# Callback models


class CallbackAck(BaseModel):
    """Response model for an accepted remote callback."""

    event: str
    task_id: str
