"""Custom exceptions for State Store."""


class StateStoreError(Exception):
    """Base exception for State Store errors."""


class TaskNotFoundError(StateStoreError):
    """Task with given ID does not exist."""


class WorkflowNotFoundError(StateStoreError):
    """Workflow with given ID (or for given task) does not exist."""


class WorkflowExistsError(StateStoreError):
    """A workflow for this task already exists."""


class WorkflowStatusConflictError(StateStoreError):
    """The workflow's status changed since it was read."""
