"""REST API for the Astrid agent."""

from astrid_agent.api.app import create_app
from astrid_agent.api.models import (
    APIResponse,
    CommentCreate,
    CommentResponse,
    WorkflowResponse,
    WorkflowStart,
)

__all__ = [
    "APIResponse",
    "CommentCreate",
    "CommentResponse",
    "WorkflowResponse",
    "WorkflowStart",
    "create_app",
]
