"""Tool Execution Sandbox - confined file, search and shell tools for executors."""

from astrid_agent.sandbox.exceptions import SandboxError, SandboxViolation, ToolExecutionError
from astrid_agent.sandbox.models import FileAction, FileChange, ToolResult
from astrid_agent.sandbox.sandbox import ToolSandbox, is_blocked_command, truncate_output
from astrid_agent.sandbox.tools import (
    READ_ONLY_TOOLS,
    TASK_COMPLETE,
    TOOL_DEFINITIONS,
    TOOL_NAMES,
    get_tool_definitions,
)

__all__ = [
    "READ_ONLY_TOOLS",
    "TASK_COMPLETE",
    "TOOL_DEFINITIONS",
    "TOOL_NAMES",
    "FileAction",
    "FileChange",
    "SandboxError",
    "SandboxViolation",
    "ToolExecutionError",
    "ToolResult",
    "ToolSandbox",
    "get_tool_definitions",
    "is_blocked_command",
    "truncate_output",
]
