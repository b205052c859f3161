"""Executor factory keyed by AI service name."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from astrid_agent.config import EngineConfig
from astrid_agent.executors.base import Executor
from astrid_agent.executors.claude import ClaudeExecutor
from astrid_agent.executors.exceptions import ExecutorError, UnknownProviderError
from astrid_agent.executors.gemini import GeminiExecutor
from astrid_agent.executors.openai import OpenAIExecutor

EXECUTORS: dict[str, type[Executor]] = {
    "claude": ClaudeExecutor,
    "openai": OpenAIExecutor,
    "gemini": GeminiExecutor,
}

API_KEY_FIELDS = {
    "claude": "anthropic_api_key",
    "openai": "openai_api_key",
    "gemini": "gemini_api_key",
}


def create_executor(
    ai_service: str,
    repo_path: str | Path,
    config: EngineConfig,
    model: str | None = None,
    on_text: Callable[[str], None] | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> Executor:
    """Create the executor for an AI service.

    Args:
        ai_service: "claude", "openai" or "gemini".
        repo_path: Worktree the executor's tools operate in.
        config: Engine configuration; supplies the API key.
        model: Optional model override.
        on_text: Receives assistant text blocks.
        on_progress: Receives status strings.

    Returns:
        A ready executor.

    Raises:
        UnknownProviderError: If the service is not supported.
        ExecutorError: If no API key is configured for the service.
    """
    service = ai_service.lower()
    executor_cls = EXECUTORS.get(service)
    if executor_cls is None:
        raise UnknownProviderError(f"Unsupported AI service: {ai_service}")

    api_key = getattr(config, API_KEY_FIELDS[service])
    if not api_key:
        raise ExecutorError(f"No API key configured for {service}")

    return executor_cls(
        repo_path=repo_path,
        api_key=api_key,
        model=model,
        config=config,
        on_text=on_text,
        on_progress=on_progress,
    )
