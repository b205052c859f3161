"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends

from astrid_agent.config import EngineConfig
from astrid_agent.orchestrator import Orchestrator
from astrid_agent.state_store import StateStore

# Global instances (initialized on app startup)
_config: EngineConfig | None = None
_state_store: StateStore | None = None
_orchestrator: Orchestrator | None = None


def init_config(config: EngineConfig) -> EngineConfig:
    """Initialize the global EngineConfig."""
    global _config  # noqa: PLW0603
    _config = config
    return _config


def get_config() -> EngineConfig:
    """Dependency that provides the EngineConfig."""
    if _config is None:
        raise RuntimeError("EngineConfig not initialized. Call init_config() first.")
    return _config


ConfigDep = Annotated[EngineConfig, Depends(get_config)]


def init_state_store(db_path: str = "astrid_agent.db") -> StateStore:
    """Initialize the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    _state_store = StateStore(db_path)
    return _state_store


def close_state_store() -> None:
    """Close the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    if _state_store is not None:
        _state_store.close()
        _state_store = None


def get_state_store() -> Generator[StateStore, None, None]:
    """Dependency that provides the StateStore instance."""
    if _state_store is None:
        raise RuntimeError("StateStore not initialized. Call init_state_store() first.")
    yield _state_store


StateStoreDep = Annotated[StateStore, Depends(get_state_store)]


def init_orchestrator(orchestrator: Orchestrator) -> None:
    """Initialize the global Orchestrator instance."""
    global _orchestrator  # noqa: PLW0603
    _orchestrator = orchestrator


def close_orchestrator() -> None:
    """Drop the global Orchestrator instance."""
    global _orchestrator  # noqa: PLW0603
    _orchestrator = None


def get_orchestrator() -> Generator[Orchestrator, None, None]:
    """Dependency that provides the Orchestrator instance."""
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not initialized. Call init_orchestrator() first.")
    yield _orchestrator


OrchestratorDep = Annotated[Orchestrator, Depends(get_orchestrator)]
