"""State Store - persistence for tasks, comments and workflows."""

from astrid_agent.state_store.exceptions import (
    StateStoreError,
    TaskNotFoundError,
    WorkflowExistsError,
    WorkflowNotFoundError,
    WorkflowStatusConflictError,
)
from astrid_agent.state_store.metadata import (
    CompletionMetadata,
    FailureMetadata,
    LegacyMetadata,
    PlanMetadata,
    RetryMetadata,
    TestingMetadata,
    WorkflowMetadata,
    parse_metadata,
)
from astrid_agent.state_store.models import Comment, Task, Workflow, WorkflowStatus
from astrid_agent.state_store.store import StateStore

__all__ = [
    "Comment",
    "CompletionMetadata",
    "FailureMetadata",
    "LegacyMetadata",
    "PlanMetadata",
    "RetryMetadata",
    "StateStore",
    "StateStoreError",
    "Task",
    "TaskNotFoundError",
    "TestingMetadata",
    "Workflow",
    "WorkflowExistsError",
    "WorkflowMetadata",
    "WorkflowNotFoundError",
    "WorkflowStatus",
    "WorkflowStatusConflictError",
    "parse_metadata",
]
