"""Data models for executors."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from astrid_agent.sandbox.models import FileChange


@dataclass
class CodingTask:
    """Input for a planning or execution phase.

    Attributes:
        task_id: Unique identifier for the task.
        title: Title of the task.
        description: Full description, possibly with appended clarifications.
    """

    task_id: str
    title: str
    description: str | None = None


@dataclass
class PlannedFile:
    """One file the plan intends to change."""

    path: str
    purpose: str = ""
    changes: str = ""


@dataclass
class ImplementationPlan:
    """Structured plan produced by the planning phase.

    Attributes:
        summary: Brief summary of the change.
        approach: High-level technical approach.
        files: Files that must change. Never empty for an accepted plan.
        estimated_complexity: simple, medium or complex.
        considerations: Edge cases and testing notes.
    """

    summary: str
    approach: str
    files: list[PlannedFile]
    estimated_complexity: str = "medium"
    considerations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImplementationPlan:
        """Build a plan from stored or model-produced JSON.

        Accepts both ``estimated_complexity`` and the camelCase
        ``estimatedComplexity`` key models tend to emit.
        """
        files = [
            PlannedFile(
                path=str(item.get("path", "")),
                purpose=str(item.get("purpose", "")),
                changes=str(item.get("changes", "")),
            )
            for item in data.get("files") or []
            if isinstance(item, dict)
        ]
        return cls(
            summary=str(data.get("summary", "")),
            approach=str(data.get("approach", "")),
            files=files,
            estimated_complexity=str(
                data.get("estimated_complexity") or data.get("estimatedComplexity") or "medium"
            ),
            considerations=[str(c) for c in data.get("considerations") or []],
        )


@dataclass
class Usage:
    """Token usage and advisory cost for one phase."""

    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PlanningResult:
    """Result of the planning phase."""

    success: bool
    plan: ImplementationPlan | None = None
    error: str | None = None
    usage: Usage | None = None


@dataclass
class ExecutionResult:
    """Result of the execution phase.

    Attributes:
        success: Whether the phase produced a usable change set.
        files: Final state of every changed file, one entry per path.
        commit_message: Commit message from task_complete (or a default).
        pr_title: PR title from task_complete (or a default).
        pr_description: PR body from task_complete (or a default).
        usage: Token usage for the phase.
        error: Why the phase stopped early, if it did.
    """

    success: bool
    files: list[FileChange] = field(default_factory=list)
    commit_message: str = ""
    pr_title: str = ""
    pr_description: str = ""
    usage: Usage | None = None
    error: str | None = None


# Provider-neutral conversation


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class Message:
    """One conversation turn.

    Tool results use role "tool" and reference the call they answer.
    """

    role: Literal["user", "assistant", "tool"]
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def tool_result(cls, call: ToolCall, content: str, is_error: bool = False) -> Message:
        return cls(
            role="tool",
            content=content,
            tool_call_id=call.id,
            name=call.name,
            is_error=is_error,
        )


@dataclass
class ModelResponse:
    """A provider response translated into neutral form."""

    text: str | None
    tool_calls: list[ToolCall]
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None
