"""Engine configuration.

Every option is owned by exactly one component; the component reads only its
own fields. Values come from keyword arguments, from ``ASTRID_*``
environment variables via :meth:`EngineConfig.from_env`, or from an
``astrid.yaml`` file via :func:`load_config`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

CONFIG_FILE_NAME = "astrid.yaml"


class ConfigError(Exception):
    """Raised when a configuration file is missing or invalid."""


DEFAULT_BLOCKED_BASH_PATTERNS = [
    "rm -rf /",
    "rm -rf ~",
    "rm -rf *",
    "sudo",
    "> /dev/",
    "mkfs",
    "dd if=",
    ":(){:|:&};:",
    "chmod -R 777 /",
    "chown -R",
    "wget -O - | sh",
    "curl | sh",
]

DEFAULT_PROTECTED_PATHS = [
    ".env",
    ".env.local",
    ".env.production",
    ".env.*.local",
    "*.pem",
    "*.key",
    "**/credentials.json",
    "**/secrets.*",
    ".git/**",
]


class EngineConfig(BaseModel):
    """Configuration for the orchestration engine.

    Attributes:
        max_planning_iterations: Tool-loop budget for the planning phase (Executor).
        max_execution_iterations: Tool-loop budget for the execution phase (Executor).
        max_budget_per_task: Advisory USD ceiling per phase (Executor).
        bash_timeout: Seconds before a run_bash command is killed (Sandbox).
        blocked_bash_patterns: Substrings that block a run_bash command (Sandbox).
        protected_paths: Glob patterns the Sandbox refuses to write (Sandbox).
        max_tool_output: Max characters of tool output fed back to the model (Sandbox).
        worktree_base_dir: Directory holding per-task worktrees (Worktree Manager).
        worktree_auto_cleanup: Remove worktrees when done (Worktree Manager).
        webhook_secret: Secret for outbound notifications and the fallback for
            verifying inbound callbacks (Webhooks).
        user_webhook_secrets: Per-user callback secrets keyed by task creator id,
            tried before ``webhook_secret`` (Webhooks).
    """

    # Executor
    max_planning_iterations: int = Field(default=20, ge=1, le=200)
    max_execution_iterations: int = Field(default=40, ge=1, le=400)
    max_budget_per_task: float = Field(default=10.0, gt=0)
    model_timeout: float = Field(default=120.0, gt=0)
    default_ai_service: str = "claude"
    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    gemini_api_key: str | None = None

    # Sandbox
    bash_timeout: int = Field(default=120, ge=1)
    blocked_bash_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_BASH_PATTERNS)
    )
    protected_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_PROTECTED_PATHS))
    max_tool_output: int = Field(default=10_000, ge=100)

    # Worktree Manager
    worktree_base_dir: str = "/tmp/astrid-worktrees"
    worktree_auto_cleanup: bool = True
    repo_path: str = "."
    github_repo: str | None = None
    github_token: str | None = None

    # Orchestrator / storage / webhooks
    db_path: str = "astrid_agent.db"
    agent_user_id: str = "ai-agent"
    agent_name: str = "Claude"
    webhook_url: str | None = None
    webhook_secret: str | None = None
    user_webhook_secrets: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> EngineConfig:
        """Build a config from ASTRID_* environment variables.

        List options are comma separated; mappings are comma separated
        ``key=value`` pairs. Keyword overrides win over the environment.

        Args:
            **overrides: Explicit values for any field.

        Returns:
            A validated EngineConfig.
        """
        values = cls._env_values()
        values.update(overrides)
        return cls.model_validate(values)

    @classmethod
    def _env_values(cls) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = os.environ.get(f"ASTRID_{name.upper()}")
            if raw is None:
                continue
            if field.annotation == list[str]:
                values[name] = [item.strip() for item in raw.split(",") if item.strip()]
            elif field.annotation == dict[str, str]:
                pairs = (item.partition("=") for item in raw.split(",") if "=" in item)
                values[name] = {k.strip(): v.strip() for k, _, v in pairs}
            elif field.annotation is bool:
                values[name] = raw.strip().lower() not in ("0", "false", "no", "off")
            else:
                values[name] = raw

        # Conventional names used by the providers and the GitHub CLI
        fallbacks = {
            "anthropic_api_key": "ANTHROPIC_API_KEY",
            "openai_api_key": "OPENAI_API_KEY",
            "gemini_api_key": "GEMINI_API_KEY",
            "github_token": "GITHUB_TOKEN",
            "webhook_secret": "CLAUDE_REMOTE_WEBHOOK_SECRET",
        }
        for name, env_name in fallbacks.items():
            if name not in values and os.environ.get(env_name):
                values[name] = os.environ[env_name]
        return values


def load_config(config_path: Path | str | None = None, **overrides: Any) -> EngineConfig:
    """Load configuration from a YAML file layered under the environment.

    Precedence, lowest first: file, ``ASTRID_*`` environment, overrides.
    Without a path, ``astrid.yaml`` in the current directory is used when
    present, otherwise only the environment is read.

    Args:
        config_path: Path to a YAML mapping of EngineConfig fields.
        **overrides: Explicit values for any field.

    Returns:
        A validated EngineConfig.

    Raises:
        ConfigError: If the file is missing, is not a YAML mapping, or holds
            invalid values.
    """
    if config_path is None:
        default = Path.cwd() / CONFIG_FILE_NAME
        config_path = default if default.exists() else None

    values: dict[str, Any] = {}
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")
        values.update(data)

    values.update(EngineConfig._env_values())
    values.update(overrides)
    try:
        return EngineConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
