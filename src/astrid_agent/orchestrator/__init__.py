"""Orchestrator package - workflow state machine for AI coding tasks."""

from astrid_agent.orchestrator.exceptions import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    OrchestratorError,
    StepFailedError,
)
from astrid_agent.orchestrator.models import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    WorkflowStep,
    can_transition,
)
from astrid_agent.orchestrator.orchestrator import CommentStream, Orchestrator

__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "AuthorizationError",
    "CommentStream",
    "InvalidTransitionError",
    "NotFoundError",
    "Orchestrator",
    "OrchestratorError",
    "StepFailedError",
    "WorkflowStep",
    "can_transition",
]
