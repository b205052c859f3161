"""Executor - the provider-independent plan/execute tool-calling loop."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from astrid_agent.config import EngineConfig
from astrid_agent.executors import prompts
from astrid_agent.executors.exceptions import (
    ExecutorError,
    ModelAPIError,
    ModelTimeoutError,
    PlanParseError,
    PlanValidationError,
)
from astrid_agent.executors.models import (
    CodingTask,
    ExecutionResult,
    ImplementationPlan,
    Message,
    ModelResponse,
    PlanningResult,
    ToolCall,
    Usage,
)
from astrid_agent.executors.plan_parser import parse_plan
from astrid_agent.executors.pricing import make_usage
from astrid_agent.logging import shorten_for_log
from astrid_agent.sandbox import (
    READ_ONLY_TOOLS,
    TASK_COMPLETE,
    TOOL_NAMES,
    FileChange,
    ToolResult,
    ToolSandbox,
    get_tool_definitions,
)

logger = logging.getLogger("astrid_agent.executors")

MAX_API_ATTEMPTS = 3
INITIAL_BACKOFF = 1.0
MAX_BACKOFF = 10.0
MAX_CONTEXT_CHARS = 10_000
DEFAULT_MAX_TOKENS = 16384

MAX_ITERATIONS_ERROR = "Max iterations reached"
BUDGET_ERROR = "Budget exceeded"


class _UsageTracker:
    def __init__(self, provider: str) -> None:
        self.provider = provider
        self.input_tokens = 0
        self.output_tokens = 0

    def add(self, response: ModelResponse) -> None:
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens

    @property
    def usage(self) -> Usage:
        return make_usage(self.provider, self.input_tokens, self.output_tokens)


class Executor(ABC):
    """Runs the two-phase tool-calling loop against one model provider.

    Subclasses only translate the neutral conversation to and from their
    provider's HTTP API by implementing :meth:`_call_model`. Everything
    else (tool dispatch, plan parsing, re-prompts, budgets, cost) lives
    here and behaves identically for every provider.
    """

    provider: str = ""
    default_model: str = ""

    def __init__(
        self,
        repo_path: str | Path,
        api_key: str,
        model: str | None = None,
        config: EngineConfig | None = None,
        sandbox: ToolSandbox | None = None,
        http_client: httpx.Client | None = None,
        on_text: Callable[[str], None] | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            repo_path: Worktree the tools operate in.
            api_key: Provider API key.
            model: Model name. Defaults to the provider's default model.
            config: Engine configuration (iteration limits, budget, sandbox options).
            sandbox: Tool sandbox. Built from config when omitted.
            http_client: HTTP client to use. Created lazily when omitted.
            on_text: Receives every assistant text block.
            on_progress: Receives short status strings.
        """
        self.repo_path = Path(repo_path)
        self.api_key = api_key
        self.model = model or self.default_model
        self.config = config or EngineConfig()
        self.sandbox = sandbox or ToolSandbox(
            self.repo_path,
            bash_timeout=self.config.bash_timeout,
            blocked_patterns=self.config.blocked_bash_patterns,
            protected_paths=self.config.protected_paths,
            max_output=self.config.max_tool_output,
        )
        self.on_text = on_text
        self.on_progress = on_progress
        self._client = http_client
        self._sleep: Callable[[float], None] = time.sleep

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client for the provider API."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.model_timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    @abstractmethod
    def _call_model(
        self, system: str, messages: list[Message], tools: list[dict[str, Any]]
    ) -> ModelResponse:
        """Send one request to the provider and translate the reply.

        Raises:
            ModelAPIError: On a non-success response.
            ModelTimeoutError: If the request timed out.
        """

    def _post(self, url: str, headers: dict[str, str], body: dict[str, Any]) -> dict[str, Any]:
        """POST to the provider, retrying rate limits with exponential backoff.

        Raises:
            ModelAPIError: On a non-2xx response or repeated transport failure.
            ModelTimeoutError: If the request timed out.
        """
        last_error: ExecutorError | None = None
        for attempt in range(MAX_API_ATTEMPTS):
            try:
                response = self.client.post(url, headers=headers, json=body)
            except httpx.TimeoutException as e:
                raise ModelTimeoutError(
                    f"{self.provider} API call timed out after {self.config.model_timeout}s"
                ) from e
            except httpx.TransportError as e:
                last_error = ModelAPIError(f"{self.provider} API request failed: {e}")
                if attempt < MAX_API_ATTEMPTS - 1:
                    self._sleep(INITIAL_BACKOFF)
                continue

            if response.is_success:
                try:
                    data = response.json()
                except ValueError as e:
                    raise ModelAPIError(
                        f"{self.provider} API returned invalid JSON: {e}",
                        status_code=response.status_code,
                    ) from e
                if not isinstance(data, dict):
                    raise ModelAPIError(
                        f"{self.provider} API returned a non-object body",
                        status_code=response.status_code,
                    )
                return data

            if response.status_code == 429 and attempt < MAX_API_ATTEMPTS - 1:
                wait = min(INITIAL_BACKOFF * 2**attempt, MAX_BACKOFF)
                logger.warning("%s rate limited; retrying in %.1fs", self.provider, wait)
                self._sleep(wait)
                continue

            raise ModelAPIError(
                f"{self.provider} API error ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        raise last_error or ModelAPIError(f"{self.provider} API call failed")

    def _complete(
        self, system: str, messages: list[Message], tools: list[dict[str, Any]]
    ) -> ModelResponse:
        """Call the model; a reply missing expected fields is a ModelAPIError."""
        try:
            return self._call_model(system, messages, tools)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ModelAPIError(f"{self.provider} API returned a malformed response: {e!r}") from e

    def _progress(self, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(message)

    def _emit_text(self, text: str | None) -> None:
        if text and self.on_text is not None:
            self.on_text(text)

    def _load_project_context(self) -> str | None:
        for name in prompts.CONTEXT_FILES:
            path = self.repo_path / name
            if path.is_file():
                content = path.read_text(encoding="utf-8", errors="replace")
                limit = MAX_CONTEXT_CHARS if name == "ASTRID.md" else MAX_CONTEXT_CHARS // 2
                if len(content) > limit:
                    content = content[:limit] + "\n\n[truncated...]"
                return content
        return None

    def _over_budget(self, tracker: _UsageTracker) -> bool:
        return tracker.usage.cost_usd > self.config.max_budget_per_task

    def _run_tool(self, call: ToolCall, allowed: tuple[str, ...]) -> ToolResult:
        self._progress(f"Using tool: {call.name}")
        if call.name not in allowed:
            return ToolResult(success=False, result=f"Tool not available in this phase: {call.name}")
        result = self.sandbox.execute(call.name, call.arguments)
        logger.debug("%s -> %s", call.name, shorten_for_log(result.result))
        return result

    def plan(self, task: CodingTask) -> PlanningResult:
        """Explore the worktree and produce an implementation plan.

        Args:
            task: The task to plan.

        Returns:
            PlanningResult. Never raises for model, tool or parse failures.
        """
        logger.info("Starting %s planning for task %s", self.provider, task.task_id)
        self._progress(f"Initializing {self.provider} for planning...")

        system = prompts.build_planning_prompt(task, self._load_project_context())
        messages = [Message.user(prompts.build_planning_kickoff(task))]
        tools = get_tool_definitions(READ_ONLY_TOOLS)
        tracker = _UsageTracker(self.provider)

        try:
            for iteration in range(self.config.max_planning_iterations):
                self._progress(f"Planning iteration {iteration + 1}...")
                response = self._complete(system, messages, tools)
                tracker.add(response)
                messages.append(
                    Message(role="assistant", content=response.text, tool_calls=response.tool_calls)
                )
                self._emit_text(response.text)

                if self._over_budget(tracker):
                    logger.warning("Planning for %s exceeded budget", task.task_id)
                    return PlanningResult(success=False, error=BUDGET_ERROR, usage=tracker.usage)

                if response.tool_calls:
                    for call in response.tool_calls:
                        result = self._run_tool(call, READ_ONLY_TOOLS)
                        messages.append(
                            Message.tool_result(call, result.result, is_error=not result.success)
                        )
                    continue

                if response.text:
                    try:
                        plan = parse_plan(response.text)
                    except PlanValidationError as e:
                        logger.info("Rejected plan for %s: %s", task.task_id, e)
                        messages.append(Message.user(prompts.EMPTY_PLAN_NUDGE))
                        continue
                    except PlanParseError as e:
                        logger.warning("Failed to parse plan JSON: %s", e)
                    else:
                        logger.info(
                            "Planning complete for %s: %d files", task.task_id, len(plan.files)
                        )
                        return PlanningResult(success=True, plan=plan, usage=tracker.usage)

                    if iteration == 0:
                        messages.append(Message.user(prompts.EXPLORE_NUDGE))
                        continue

                messages.append(Message.user(prompts.PLAN_NUDGE))

        except (ModelAPIError, ModelTimeoutError) as e:
            logger.error("Planning failed for %s: %s", task.task_id, e)
            return PlanningResult(success=False, error=str(e), usage=tracker.usage)

        logger.warning("Planning for %s hit the iteration limit", task.task_id)
        return PlanningResult(success=False, error=MAX_ITERATIONS_ERROR, usage=tracker.usage)

    def execute(
        self, plan: ImplementationPlan, task: CodingTask, feedback: str | None = None
    ) -> ExecutionResult:
        """Implement an approved plan in the worktree.

        Args:
            plan: The approved plan.
            task: The task being implemented.
            feedback: Reviewer change request for a revision pass.

        Returns:
            ExecutionResult with the final content of every changed file.
        """
        logger.info(
            "Starting %s execution for task %s (%d files planned)",
            self.provider,
            task.task_id,
            len(plan.files),
        )
        self._progress(f"Initializing {self.provider} agent...")

        system = prompts.build_execution_prompt(
            plan, task, feedback=feedback, project_context=self._load_project_context()
        )
        messages = [Message.user(prompts.EXECUTION_KICKOFF)]
        tools = get_tool_definitions(TOOL_NAMES)
        tracker = _UsageTracker(self.provider)
        changes: dict[str, FileChange] = {}

        def partial(error: str, success: bool) -> ExecutionResult:
            default = f"feat: {task.title}"
            return ExecutionResult(
                success=success,
                files=list(changes.values()),
                commit_message=default,
                pr_title=default,
                pr_description=task.description or task.title,
                usage=tracker.usage,
                error=error,
            )

        try:
            for iteration in range(self.config.max_execution_iterations):
                self._progress(f"Implementation iteration {iteration + 1}...")
                response = self._complete(system, messages, tools)
                tracker.add(response)
                messages.append(
                    Message(role="assistant", content=response.text, tool_calls=response.tool_calls)
                )
                self._emit_text(response.text)

                if self._over_budget(tracker):
                    logger.warning("Execution for %s exceeded budget", task.task_id)
                    return partial(BUDGET_ERROR, success=False)

                if not response.tool_calls:
                    messages.append(Message.user(prompts.COMPLETE_NUDGE))
                    continue

                for call in response.tool_calls:
                    if call.name == TASK_COMPLETE:
                        self._progress(f"Using tool: {call.name}")
                        logger.info(
                            "Execution complete for %s: %d files", task.task_id, len(changes)
                        )
                        args = call.arguments
                        return ExecutionResult(
                            success=True,
                            files=list(changes.values()),
                            commit_message=str(args.get("commit_message") or f"feat: {task.title}"),
                            pr_title=str(args.get("pr_title") or f"feat: {task.title}"),
                            pr_description=str(
                                args.get("pr_description") or task.description or task.title
                            ),
                            usage=tracker.usage,
                        )

                    result = self._run_tool(call, TOOL_NAMES)
                    if result.file_change is not None:
                        changes[result.file_change.path] = result.file_change
                    messages.append(
                        Message.tool_result(call, result.result, is_error=not result.success)
                    )

        except (ModelAPIError, ModelTimeoutError) as e:
            logger.error("Execution failed for %s: %s", task.task_id, e)
            return partial(str(e), success=False)

        logger.warning("Execution for %s hit the iteration limit", task.task_id)
        return partial(MAX_ITERATIONS_ERROR, success=bool(changes))
