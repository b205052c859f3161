"""WorktreeManager - per-task git worktrees, branches and pull requests."""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

import httpx

from astrid_agent.logging import sanitize_for_log
from astrid_agent.worktree.exceptions import CommitError, PRError, WorktreeError
from astrid_agent.worktree.github import GitHubClient
from astrid_agent.worktree.models import Worktree

logger = logging.getLogger("astrid_agent.worktree")

BRANCH_PREFIX = "task/"
FETCH_TIMEOUT = 30
GIT_TIMEOUT = 60
DEFAULT_PR_BODY = "Task implementation\n\nCreated by Astrid AI Agent"


class WorktreeManager:
    """Creates, pushes and removes isolated worktrees for tasks.

    Each task gets its own directory under ``base_dir`` and a branch whose
    name is derived from the task id, so concurrent tasks sharing one clone
    never touch the same checked-out files and retries land on the same
    branch.
    """

    def __init__(
        self,
        base_dir: str | Path = "/tmp/astrid-worktrees",
        auto_cleanup: bool = True,
        github: GitHubClient | None = None,
    ) -> None:
        """Initialize the Worktree Manager.

        Args:
            base_dir: Directory that holds the worktrees.
            auto_cleanup: Remove worktrees on cleanup. False keeps them for debugging.
            github: Client used to find or open pull requests. Without one,
                    push only pushes the branch.
        """
        self.base_dir = Path(base_dir)
        self.auto_cleanup = auto_cleanup
        self.github = github

    def _run_git(self, *args: str, cwd: str | Path, timeout: int = GIT_TIMEOUT) -> str:
        """Run a git command.

        Args:
            *args: Git command arguments
            cwd: Directory to run in
            timeout: Seconds before the command is killed

        Returns:
            Command stdout

        Raises:
            subprocess.CalledProcessError: If command fails
            subprocess.TimeoutExpired: If command exceeds the timeout
        """
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
        return result.stdout.strip()

    @staticmethod
    def branch_name_for(task_id: str) -> str:
        """Deterministic branch name for a task."""
        return f"{BRANCH_PREFIX}{task_id[:8]}"

    def create(self, repo_path: str | Path, task_id: str) -> Worktree:
        """Create a worktree for a task.

        An existing local or remote branch for the task is reused so a retry
        resumes the earlier work; otherwise a new branch is cut from the
        default branch.

        Args:
            repo_path: Path to the main repository clone
            task_id: The task the worktree belongs to

        Returns:
            The created Worktree

        Raises:
            WorktreeError: If the worktree cannot be created
        """
        repo_path = Path(repo_path)
        short_id = task_id[:8]
        branch_name = self.branch_name_for(task_id)
        path = self.base_dir / f"task-{short_id}-{int(time.time() * 1000)}"
        logger.info("Creating worktree for task %s (branch=%s, path=%s)", short_id, branch_name, path)

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorktreeError(f"Cannot create worktree base dir {self.base_dir}: {e}") from e

        try:
            self._run_git("fetch", "origin", cwd=repo_path, timeout=FETCH_TIMEOUT)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired):
            logger.warning("Could not fetch from origin (continuing anyway)")

        try:
            # Drop records of worktrees whose directories are gone
            self._run_git("worktree", "prune", cwd=repo_path)
            if self._branch_exists(repo_path, branch_name):
                logger.info("Using existing branch %s", branch_name)
                self._run_git("worktree", "add", str(path), branch_name, cwd=repo_path)
            else:
                base = self._default_branch(repo_path)
                logger.info("Creating branch %s from %s", branch_name, base)
                self._run_git(
                    "worktree", "add", "-b", branch_name, str(path), base, cwd=repo_path
                )
        except subprocess.CalledProcessError as e:
            logger.error("Failed to create worktree for %s: %s", branch_name, e.stderr)
            raise WorktreeError(
                f"Failed to create worktree for branch '{branch_name}': {e.stderr}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise WorktreeError(f"Timed out creating worktree for branch '{branch_name}'") from e

        logger.info("Created worktree %s", path)
        return Worktree(
            path=path,
            branch_name=branch_name,
            repo_path=repo_path,
            task_id=task_id,
            _on_cleanup=self.cleanup,
        )

    def _branch_exists(self, repo_path: Path, branch_name: str) -> bool:
        for ref in (branch_name, f"origin/{branch_name}"):
            try:
                self._run_git("rev-parse", "--verify", "--quiet", ref, cwd=repo_path)
                return True
            except subprocess.CalledProcessError:
                continue
        return False

    def _default_branch(self, repo_path: Path) -> str:
        """Detect the default branch: origin/HEAD, then main, then master."""
        try:
            ref = self._run_git("symbolic-ref", "refs/remotes/origin/HEAD", cwd=repo_path)
            if ref:
                return ref.removeprefix("refs/remotes/origin/")
        except subprocess.CalledProcessError:
            pass
        try:
            self._run_git("rev-parse", "--verify", "--quiet", "main", cwd=repo_path)
            return "main"
        except subprocess.CalledProcessError:
            return "master"

    def commit(self, worktree: Worktree, message: str) -> bool:
        """Stage and commit everything in the worktree.

        Args:
            worktree: The worktree to commit in
            message: Commit message

        Returns:
            True if a commit was made, False if there was nothing to commit

        Raises:
            CommitError: If staging or committing fails
        """
        try:
            status = self._run_git("status", "--porcelain", cwd=worktree.path)
            if not status:
                logger.debug("Nothing to commit in %s", worktree.path)
                return False
            self._run_git("add", "-A", cwd=worktree.path)
            self._run_git("commit", "-m", message, cwd=worktree.path)
        except subprocess.CalledProcessError as e:
            logger.error("Failed to commit in %s: %s", worktree.path, e.stderr)
            raise CommitError(f"Failed to commit on '{worktree.branch_name}': {e.stderr}") from e
        logger.info("Committed changes on %s: %s", worktree.branch_name, message.splitlines()[0])
        return True

    def push(self, worktree: Worktree, title: str, body: str | None = None) -> str | None:
        """Push the worktree branch and make sure a pull request exists.

        Uncommitted residue is committed first. An already open PR for the
        branch is returned instead of opening a second one.

        Args:
            worktree: The worktree to push
            title: PR title (also used for the residue commit message)
            body: PR description

        Returns:
            The PR URL, or None if anything failed or no GitHub client is set
        """
        branch = worktree.branch_name
        try:
            prefix = "fix" if "fix" in title.lower() else "feat"
            self.commit(worktree, f"{prefix}: {title[:50]}")

            logger.info("Pushing branch %s to origin", branch)
            self._run_git("push", "-u", "origin", branch, cwd=worktree.path)

            if self.github is None:
                logger.warning("No GitHub client configured; pushed %s without a PR", branch)
                return None

            existing = self.github.find_open_pr(branch)
            if existing is not None:
                logger.info("PR already exists for %s: %s", branch, existing.url)
                return existing.url

            base = self._default_branch(worktree.repo_path)
            pr = self.github.create_pr(branch, title[:100], body or DEFAULT_PR_BODY, base=base)
            return pr.url
        except subprocess.CalledProcessError as e:
            logger.error("Failed to push %s: %s", branch, sanitize_for_log(e.stderr or ""))
        except (subprocess.TimeoutExpired, WorktreeError, PRError, httpx.HTTPError) as e:
            logger.error("Failed to push/create PR for %s: %s", branch, e)
        return None

    def cleanup(self, worktree: Worktree) -> None:
        """Remove a worktree. Failures are logged, never raised.

        Args:
            worktree: The worktree to remove
        """
        if not self.auto_cleanup:
            logger.info("Auto-cleanup disabled; keeping worktree %s", worktree.path)
            return
        if worktree.removed:
            return

        try:
            self._run_git(
                "worktree", "remove", str(worktree.path), "--force", cwd=worktree.repo_path
            )
            logger.info("Removed worktree %s", worktree.path)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.warning("git worktree remove failed for %s (%s); deleting", worktree.path, e)
            shutil.rmtree(worktree.path, ignore_errors=True)
            try:
                self._run_git("worktree", "prune", cwd=worktree.repo_path)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as prune_error:
                logger.warning("git worktree prune failed: %s", prune_error)
        worktree.removed = True
