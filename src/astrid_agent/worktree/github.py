"""GitHubClient - pull request and CI status access over the GitHub REST API."""

from __future__ import annotations

import logging

import httpx

from astrid_agent.worktree.exceptions import PRError
from astrid_agent.worktree.models import PR, CIStatus

logger = logging.getLogger("astrid_agent.worktree.github")

PASSING_CONCLUSIONS = ("success", "skipped", "neutral")


class GitHubClient:
    """Thin client for the pull request endpoints the engine needs."""

    def __init__(
        self,
        repo: str,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            repo: GitHub repo in "owner/repo" format
            token: GitHub personal access token
            base_url: GitHub API base URL (for testing/enterprise)
            timeout: Request timeout in seconds
        """
        self.repo = repo
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client for GitHub API."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=self.timeout,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def find_open_pr(self, branch: str) -> PR | None:
        """Find an open pull request whose head is the given branch.

        Args:
            branch: Head branch name

        Returns:
            The open PR, or None if there is none

        Raises:
            PRError: If the lookup fails
        """
        response = self.client.get(
            f"/repos/{self.repo}/pulls",
            params={"head": f"{self.owner}:{branch}", "state": "open"},
        )
        if response.status_code != 200:
            raise PRError(f"Failed to list PRs: {response.status_code} - {response.text}")

        pulls = response.json()
        if not pulls:
            return None
        data = pulls[0]
        return PR(id=data["id"], url=data["html_url"], number=data["number"])

    def create_pr(self, branch: str, title: str, body: str, base: str = "main") -> PR:
        """Create a pull request.

        Args:
            branch: Head branch (the branch with changes)
            title: PR title
            body: PR description
            base: Base branch to merge into (default: main)

        Returns:
            PR object with id, url, and number

        Raises:
            PRError: If PR creation fails
        """
        logger.info("Creating PR: %s (%s -> %s)", title, branch, base)
        response = self.client.post(
            f"/repos/{self.repo}/pulls",
            json={
                "title": title,
                "body": body,
                "head": branch,
                "base": base,
            },
        )

        if response.status_code != 201:
            logger.error("Failed to create PR: %s", response.text)
            raise PRError(f"Failed to create PR: {response.status_code} - {response.text}")

        data = response.json()
        pr = PR(id=data["id"], url=data["html_url"], number=data["number"])
        logger.info("Created PR #%d: %s", pr.number, pr.url)
        return pr

    def get_branch_ci_status(self, branch: str) -> CIStatus:
        """Get the combined CI status of a branch head.

        Check runs (GitHub Actions) take priority over the legacy commit
        status API: any unfinished run is pending, any run with a
        non-passing conclusion is a failure.

        Args:
            branch: Branch name

        Returns:
            CIStatus indicating pending, success, or failure

        Raises:
            PRError: If the status lookup fails
        """
        status_response = self.client.get(f"/repos/{self.repo}/commits/{branch}/status")
        if status_response.status_code != 200:
            raise PRError(
                f"Failed to get status: {status_response.status_code} - {status_response.text}"
            )
        state = status_response.json()["state"]

        checks_response = self.client.get(f"/repos/{self.repo}/commits/{branch}/check-runs")
        if checks_response.status_code == 200:
            check_runs = checks_response.json().get("check_runs", [])
            if check_runs:
                for check in check_runs:
                    if check["status"] != "completed":
                        return CIStatus.PENDING
                    if check["conclusion"] not in PASSING_CONCLUSIONS:
                        return CIStatus.FAILURE
                # No commit statuses reported but every check run passed
                if state == "pending":
                    return CIStatus.SUCCESS

        if state == "success":
            status = CIStatus.SUCCESS
        elif state == "pending":
            status = CIStatus.PENDING
        else:  # failure, error
            status = CIStatus.FAILURE
        logger.debug("Branch %s CI status: %s", branch, status)
        return status
