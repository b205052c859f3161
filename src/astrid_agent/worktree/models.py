"""Data models for the Worktree Manager."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class CIStatus(StrEnum):
    """CI check status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class PR:
    """Pull request data."""

    id: int
    url: str
    number: int


@dataclass
class Worktree:
    """An isolated working directory and branch owned by one task.

    Attributes:
        path: Filesystem path of the worktree.
        branch_name: Branch checked out in the worktree.
        repo_path: The main repository clone the worktree belongs to.
        task_id: Owning task.
    """

    path: Path
    branch_name: str
    repo_path: Path
    task_id: str
    _on_cleanup: Callable[[Worktree], None] | None = field(default=None, repr=False)
    removed: bool = False

    def cleanup(self) -> None:
        """Remove the worktree. Never raises."""
        if self._on_cleanup is not None:
            self._on_cleanup(self)
