"""Fixtures for API route tests: a real app over an in-memory store."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from astrid_agent.api import create_app
from astrid_agent.api.dependencies import get_config, get_orchestrator, get_state_store
from astrid_agent.config import EngineConfig
from astrid_agent.executors import (
    ExecutionResult,
    ImplementationPlan,
    PlannedFile,
    PlanningResult,
)
from astrid_agent.orchestrator import Orchestrator
from astrid_agent.sandbox import FileAction, FileChange
from astrid_agent.state_store import StateStore, Task
from astrid_agent.worktree import Worktree


@pytest.fixture
def config(tmp_path: Path) -> EngineConfig:
    """Engine config with an environment secret and one per-user secret."""
    return EngineConfig(
        db_path=":memory:",
        repo_path=str(tmp_path),
        webhook_secret="env-secret",
        user_webhook_secrets={"user-2": "user-2-secret"},
    )


@pytest.fixture
def store() -> Iterator[StateStore]:
    """Create an in-memory StateStore."""
    s = StateStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def task(store: StateStore) -> Task:
    """Create a task assigned to the agent."""
    return store.create_task(
        title="Add dark mode",
        creator_id="user-1",
        description="Toggle in settings",
        assignee_id="claude",
    )


@pytest.fixture
def executor() -> MagicMock:
    """Create a mock Executor that plans and implements one file."""
    ex = MagicMock()
    ex.plan.return_value = PlanningResult(
        success=True,
        plan=ImplementationPlan(
            summary="Add a dark theme",
            approach="Theme module",
            files=[PlannedFile(path="src/theme.py", purpose="theme")],
        ),
    )
    ex.execute.return_value = ExecutionResult(
        success=True,
        files=[FileChange("src/theme.py", "DARK = True\n", FileAction.CREATE)],
        commit_message="feat: add dark mode",
        pr_title="Add dark mode",
    )
    return ex


@pytest.fixture
def github() -> MagicMock:
    """Create a mock GitHubClient."""
    return MagicMock()


@pytest.fixture
def orchestrator(
    store: StateStore,
    executor: MagicMock,
    github: MagicMock,
    config: EngineConfig,
    tmp_path: Path,
) -> Orchestrator:
    """Create an Orchestrator with mocked worktrees and executors."""
    worktrees = MagicMock()
    worktrees.create.return_value = Worktree(
        path=tmp_path / "wt", branch_name="astrid/task-abc", repo_path=tmp_path, task_id="t"
    )
    worktrees.push.return_value = "https://github.com/acme/app/pull/7"
    return Orchestrator(
        store=store,
        worktrees=worktrees,
        config=config,
        executor_factory=MagicMock(return_value=executor),
        github=github,
    )


@pytest.fixture
def app(config: EngineConfig, store: StateStore, orchestrator: Orchestrator) -> FastAPI:
    """Create the app with its dependencies overridden."""
    app = create_app(config)

    def override_get_state_store():
        yield store

    def override_get_orchestrator():
        yield orchestrator

    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_state_store] = override_get_state_store
    app.dependency_overrides[get_orchestrator] = override_get_orchestrator
    return app


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Create a test client."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
