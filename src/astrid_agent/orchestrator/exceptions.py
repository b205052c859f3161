"""Exceptions for the Orchestrator module."""


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""


class NotFoundError(OrchestratorError):
    """A task or workflow the step needs does not exist."""


class AuthorizationError(OrchestratorError):
    """The comment author may not drive this workflow."""


class InvalidTransitionError(OrchestratorError):
    """A status change not allowed by the workflow state machine."""


class StepFailedError(OrchestratorError):
    """A workflow step produced an unusable result."""
