"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from astrid_agent import __version__
from astrid_agent.api.dependencies import (
    close_orchestrator,
    close_state_store,
    init_config,
    init_orchestrator,
    init_state_store,
)
from astrid_agent.api.models import APIResponse
from astrid_agent.api.routes import callbacks, comments, workflows
from astrid_agent.config import EngineConfig, load_config
from astrid_agent.orchestrator import InvalidTransitionError, NotFoundError, Orchestrator
from astrid_agent.state_store import (
    StateStoreError,
    TaskNotFoundError,
    WorkflowExistsError,
    WorkflowNotFoundError,
)
from astrid_agent.webhooks import SignatureVerificationError, WebhookClient
from astrid_agent.worktree import GitHubClient, WorktreeManager

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger("astrid_agent.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    config: EngineConfig = app.state.config
    init_config(config)
    store = init_state_store(config.db_path)

    github = None
    if config.github_repo and config.github_token:
        github = GitHubClient(repo=config.github_repo, token=config.github_token)
    else:
        logger.warning("GitHub repo or token not configured; branches are pushed without PRs")
    worktrees = WorktreeManager(
        base_dir=config.worktree_base_dir,
        auto_cleanup=config.worktree_auto_cleanup,
        github=github,
    )
    webhooks = WebhookClient() if config.webhook_url else None

    init_orchestrator(
        Orchestrator(store=store, worktrees=worktrees, config=config, webhooks=webhooks)
    )
    logger.info("Astrid agent API started (db=%s, repo=%s)", config.db_path, config.repo_path)

    yield
    # Shutdown
    close_orchestrator()
    if webhooks is not None:
        webhooks.close()
    if github is not None:
        github.close()
    close_state_store()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](data=None, error=message).model_dump(),
    )


def create_app(config: EngineConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Astrid Agent API",
        description="REST API for the Astrid AI coding agent orchestration engine",
        version=__version__,
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.config = config or load_config()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(TaskNotFoundError)
    async def task_not_found_handler(_request: Request, _exc: TaskNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Task not found")

    @app.exception_handler(WorkflowNotFoundError)
    async def workflow_not_found_handler(
        _request: Request, _exc: WorkflowNotFoundError
    ) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Workflow not found")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(WorkflowExistsError)
    async def workflow_exists_handler(
        _request: Request, _exc: WorkflowExistsError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "Workflow already exists for this task")

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(
        _request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(SignatureVerificationError)
    async def signature_handler(
        _request: Request, exc: SignatureVerificationError
    ) -> JSONResponse:
        logger.warning("Callback rejected (source: %s): %s", exc.source, exc)
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(StateStoreError)
    async def state_store_error_handler(_request: Request, exc: StateStoreError) -> JSONResponse:
        logger.error("State store error: %s", exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    # Include routers
    app.include_router(workflows.router, prefix="/api/v1")
    app.include_router(comments.router, prefix="/api/v1")
    app.include_router(callbacks.router, prefix="/api/v1")

    return app
