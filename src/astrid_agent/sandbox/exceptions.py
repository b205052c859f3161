"""Custom exceptions for the Tool Execution Sandbox."""


class SandboxError(Exception):
    """Base exception for sandbox errors."""


class SandboxViolation(SandboxError):
    """A tool call tried to leave the worktree, write a protected path or run a blocked command."""


class ToolExecutionError(SandboxError):
    """A file or command operation failed inside a tool call."""
