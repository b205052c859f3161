"""Worktree Manager - isolated git worktrees and pull requests per task."""

from astrid_agent.worktree.exceptions import CommitError, PRError, WorktreeError
from astrid_agent.worktree.github import GitHubClient
from astrid_agent.worktree.manager import WorktreeManager
from astrid_agent.worktree.models import PR, CIStatus, Worktree

__all__ = [
    "PR",
    "CIStatus",
    "CommitError",
    "GitHubClient",
    "PRError",
    "Worktree",
    "WorktreeError",
    "WorktreeManager",
]
