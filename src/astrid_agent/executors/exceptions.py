"""Custom exceptions for executors."""


class ExecutorError(Exception):
    """Base exception for executor errors."""


class ModelAPIError(ExecutorError):
    """The model provider returned a non-success response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelTimeoutError(ExecutorError, TimeoutError):
    """A model API call exceeded its timeout."""


class PlanParseError(ExecutorError):
    """Model text did not contain a well-formed implementation plan."""


class PlanValidationError(PlanParseError):
    """A parsed plan is structurally invalid (for example, it lists no files)."""


class UnknownProviderError(ExecutorError):
    """No executor exists for the requested AI service."""
