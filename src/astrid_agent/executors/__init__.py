"""Executors - provider-specific drivers of the plan/execute tool-calling loop."""

from astrid_agent.executors.base import BUDGET_ERROR, MAX_ITERATIONS_ERROR, Executor
from astrid_agent.executors.claude import ClaudeExecutor
from astrid_agent.executors.exceptions import (
    ExecutorError,
    ModelAPIError,
    ModelTimeoutError,
    PlanParseError,
    PlanValidationError,
    UnknownProviderError,
)
from astrid_agent.executors.factory import create_executor
from astrid_agent.executors.gemini import GeminiExecutor
from astrid_agent.executors.models import (
    CodingTask,
    ExecutionResult,
    ImplementationPlan,
    Message,
    ModelResponse,
    PlannedFile,
    PlanningResult,
    ToolCall,
    Usage,
)
from astrid_agent.executors.openai import OpenAIExecutor
from astrid_agent.executors.plan_parser import parse_plan, validate_plan
from astrid_agent.executors.pricing import estimate_cost

__all__ = [
    "BUDGET_ERROR",
    "MAX_ITERATIONS_ERROR",
    "ClaudeExecutor",
    "CodingTask",
    "ExecutionResult",
    "Executor",
    "ExecutorError",
    "GeminiExecutor",
    "ImplementationPlan",
    "Message",
    "ModelAPIError",
    "ModelResponse",
    "ModelTimeoutError",
    "OpenAIExecutor",
    "PlanParseError",
    "PlanValidationError",
    "PlannedFile",
    "PlanningResult",
    "ToolCall",
    "UnknownProviderError",
    "Usage",
    "create_executor",
    "estimate_cost",
    "parse_plan",
    "validate_plan",
]
