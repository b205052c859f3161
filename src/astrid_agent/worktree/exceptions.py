"""Custom exceptions for the Worktree Manager."""


class WorktreeError(Exception):
    """Base exception for worktree errors; raised when a worktree cannot be created."""


class CommitError(WorktreeError):
    """Error staging or committing changes in a worktree."""


class PRError(WorktreeError):
    """Error talking to the GitHub pull request API."""
