"""Data models for the Orchestrator module."""

from enum import StrEnum

from astrid_agent.state_store import WorkflowStatus


class WorkflowStep(StrEnum):
    """Step names recorded in failure metadata."""

    PLANNING = "planning"
    EXECUTION = "execution"
    CHANGES = "changes"
    MERGE = "merge"
    RETRY = "retry"
    CHECKS = "checks"
    REMOTE = "remote"


TERMINAL_STATUSES = frozenset({WorkflowStatus.COMPLETED})

ALLOWED_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({WorkflowStatus.AWAITING_APPROVAL, WorkflowStatus.FAILED}),
    WorkflowStatus.AWAITING_APPROVAL: frozenset({WorkflowStatus.TESTING, WorkflowStatus.FAILED}),
    WorkflowStatus.TESTING: frozenset(
        {WorkflowStatus.READY_TO_MERGE, WorkflowStatus.COMPLETED, WorkflowStatus.FAILED}
    ),
    WorkflowStatus.READY_TO_MERGE: frozenset({WorkflowStatus.COMPLETED, WorkflowStatus.FAILED}),
    WorkflowStatus.FAILED: frozenset({WorkflowStatus.PENDING}),
    WorkflowStatus.COMPLETED: frozenset(),
}


def can_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    """Whether ``current -> target`` is an allowed status change."""
    return target in ALLOWED_TRANSITIONS[current]
