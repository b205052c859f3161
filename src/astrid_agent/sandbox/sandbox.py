"""ToolSandbox - executes the model's tool calls inside one worktree."""

from __future__ import annotations

import fnmatch
import logging
import subprocess
from pathlib import Path
from typing import Any

from astrid_agent.config import DEFAULT_BLOCKED_BASH_PATTERNS, DEFAULT_PROTECTED_PATHS
from astrid_agent.sandbox.exceptions import SandboxViolation, ToolExecutionError
from astrid_agent.sandbox.models import FileAction, FileChange, ToolResult

logger = logging.getLogger("astrid_agent.sandbox")

DEFAULT_BASH_TIMEOUT = 120
BASH_MAX_OUTPUT_BYTES = 1024 * 1024
GREP_TIMEOUT = 30
GLOB_MAX_RESULTS = 100
GREP_MAX_RESULTS = 50
DEFAULT_MAX_OUTPUT = 10_000

TRUNCATION_MARKER = "\n\n[... output truncated]"


def truncate_output(output: str, max_length: int = DEFAULT_MAX_OUTPUT) -> str:
    """Truncate tool output before it goes back into the conversation.

    Args:
        output: Raw tool output.
        max_length: Maximum number of characters to keep.

    Returns:
        The output, cut at max_length with a truncation marker appended.
    """
    if len(output) <= max_length:
        return output
    return output[:max_length] + TRUNCATION_MARKER


def is_blocked_command(command: str, patterns: list[str] | None = None) -> bool:
    """Check a shell command against the denylist (case-insensitive substring)."""
    if patterns is None:
        patterns = DEFAULT_BLOCKED_BASH_PATTERNS
    lowered = command.lower()
    return any(pattern.lower() in lowered for pattern in patterns)


class ToolSandbox:
    """Runs the fixed tool vocabulary confined to a worktree root.

    Every call returns a ToolResult. File and command failures, sandbox
    violations and unknown tools are reported as ``success=False`` results
    so the model can correct itself; nothing is raised into the tool loop.
    """

    def __init__(
        self,
        root: str | Path,
        bash_timeout: int = DEFAULT_BASH_TIMEOUT,
        blocked_patterns: list[str] | None = None,
        protected_paths: list[str] | None = None,
        max_output: int = DEFAULT_MAX_OUTPUT,
    ) -> None:
        """Initialize the sandbox.

        Args:
            root: Worktree root; all paths resolve inside it.
            bash_timeout: Seconds before run_bash is killed.
            blocked_patterns: Denylist for run_bash. Defaults to the built-in list.
            protected_paths: Glob patterns write_file/edit_file refuse to touch.
            max_output: Max characters of output returned to the model.
        """
        self.root = Path(root).resolve()
        self.bash_timeout = bash_timeout
        self.blocked_patterns = (
            list(blocked_patterns)
            if blocked_patterns is not None
            else list(DEFAULT_BLOCKED_BASH_PATTERNS)
        )
        self.protected_paths = (
            list(protected_paths) if protected_paths is not None else list(DEFAULT_PROTECTED_PATHS)
        )
        self.max_output = max_output

    def execute(self, name: str, args: dict[str, Any]) -> ToolResult:
        """Execute one tool call.

        Args:
            name: Tool name from the fixed vocabulary.
            args: Tool arguments as decoded from the model response.

        Returns:
            ToolResult with output already truncated for the conversation.
        """
        logger.debug("Executing tool %s", name)
        try:
            match name:
                case "read_file":
                    result = self._read_file(args)
                case "write_file":
                    result = self._write_file(args)
                case "edit_file":
                    result = self._edit_file(args)
                case "run_bash":
                    result = self._run_bash(args)
                case "glob_files":
                    result = self._glob_files(args)
                case "grep_search":
                    result = self._grep_search(args)
                case "task_complete":
                    result = ToolResult(success=True, result="Task marked complete")
                case _:
                    logger.warning("Unknown tool requested: %s", name)
                    result = ToolResult(success=False, result=f"Unknown tool: {name}")
        except SandboxViolation as e:
            logger.warning("Sandbox violation in %s: %s", name, e)
            result = ToolResult(success=False, result=f"Error: {e}")
        except KeyError as e:
            result = ToolResult(success=False, result=f"Error: Missing argument {e}")
        except (ToolExecutionError, OSError, TypeError, ValueError) as e:
            logger.info("Tool %s failed: %s", name, e)
            result = ToolResult(success=False, result=f"Error: {e}")

        if len(result.result) > self.max_output:
            result = ToolResult(
                success=result.success,
                result=truncate_output(result.result, self.max_output),
                file_change=result.file_change,
            )
        return result

    def resolve_path(self, relative: str) -> Path:
        """Resolve a model-supplied path against the worktree root.

        Args:
            relative: Path as given by the model.

        Returns:
            Absolute resolved path under the root.

        Raises:
            SandboxViolation: If the path is absolute or escapes the root.
        """
        if not relative:
            raise SandboxViolation("Empty file path")
        if Path(relative).is_absolute():
            raise SandboxViolation(f"Absolute paths are not allowed: {relative}")
        resolved = (self.root / relative).resolve()
        if not resolved.is_relative_to(self.root):
            raise SandboxViolation(f"Path escapes the worktree: {relative}")
        return resolved

    def is_protected(self, path: Path) -> bool:
        """Whether a resolved path matches one of the protected patterns."""
        relative = path.relative_to(self.root).as_posix()
        for pattern in self.protected_paths:
            if fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(path.name, pattern):
                return True
            # "**/x" also matches x at the root
            if pattern.startswith("**/") and fnmatch.fnmatch(relative, pattern[3:]):
                return True
            # "dir/**" matches anything below dir
            if pattern.endswith("/**") and (
                relative == pattern[:-3] or relative.startswith(pattern[:-2])
            ):
                return True
        return False

    def _writable_path(self, relative: str) -> Path:
        path = self.resolve_path(relative)
        if self.is_protected(path):
            raise SandboxViolation(f"Path is protected: {relative}")
        return path

    def _read_file(self, args: dict[str, Any]) -> ToolResult:
        path = self.resolve_path(args["file_path"])
        if not path.is_file():
            raise ToolExecutionError(f"File not found: {args['file_path']}")
        return ToolResult(success=True, result=path.read_text(encoding="utf-8"))

    def _write_file(self, args: dict[str, Any]) -> ToolResult:
        file_path = args["file_path"]
        content = args["content"]
        path = self._writable_path(file_path)

        action = FileAction.MODIFY if path.exists() else FileAction.CREATE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

        verb = "created" if action == FileAction.CREATE else "updated"
        return ToolResult(
            success=True,
            result=f"File {verb}: {file_path}",
            file_change=FileChange(path=file_path, content=content, action=action),
        )

    def _edit_file(self, args: dict[str, Any]) -> ToolResult:
        file_path = args["file_path"]
        old_string = args["old_string"]
        new_string = args["new_string"]
        path = self._writable_path(file_path)
        if not path.is_file():
            raise ToolExecutionError(f"File not found: {file_path}")

        old_content = path.read_text(encoding="utf-8")
        if old_string not in old_content:
            return ToolResult(
                success=False,
                result="Error: Could not find the specified string in file",
            )

        new_content = old_content.replace(old_string, new_string, 1)
        path.write_text(new_content, encoding="utf-8")
        return ToolResult(
            success=True,
            result=f"File edited: {file_path}",
            file_change=FileChange(path=file_path, content=new_content, action=FileAction.MODIFY),
        )

    def _run_bash(self, args: dict[str, Any]) -> ToolResult:
        command = args["command"]
        if is_blocked_command(command, self.blocked_patterns):
            logger.warning("Blocked command: %s", command)
            return ToolResult(success=False, result="Error: Command blocked by safety policy")

        logger.info("Running command in %s: %s", self.root, command)
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.bash_timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", self.bash_timeout, command)
            return ToolResult(
                success=False,
                result=f"Error: Command timed out after {self.bash_timeout} seconds",
            )

        stdout = result.stdout[:BASH_MAX_OUTPUT_BYTES]
        if result.returncode != 0:
            error_output = (
                result.stderr[:BASH_MAX_OUTPUT_BYTES]
                or stdout
                or f"Command failed with exit code {result.returncode}"
            )
            return ToolResult(success=False, result=f"Error: {error_output}")
        return ToolResult(success=True, result=stdout or "(no output)")

    def _glob_files(self, args: dict[str, Any]) -> ToolResult:
        pattern = args["pattern"]
        if Path(pattern).is_absolute() or ".." in Path(pattern).parts:
            raise SandboxViolation(f"Pattern escapes the worktree: {pattern}")

        files = sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.glob(pattern)
            if path.is_file() and ".git" not in path.relative_to(self.root).parts
        )
        listed = "\n".join(files[:GLOB_MAX_RESULTS]) or "(no matches)"
        if len(files) > GLOB_MAX_RESULTS:
            listed += f"\n\n[... {len(files) - GLOB_MAX_RESULTS} more files truncated]"
        return ToolResult(success=True, result=listed)

    def _grep_search(self, args: dict[str, Any]) -> ToolResult:
        pattern = args["pattern"]
        file_pattern = args.get("file_pattern") or "."
        target = self.resolve_path(file_pattern) if file_pattern != "." else self.root

        try:
            result = subprocess.run(
                ["grep", "-rn", "--exclude-dir=.git", "-e", pattern, str(target)],
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=GREP_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            return ToolResult(success=False, result="Error: Search timed out")

        # grep exits 1 when nothing matched
        if result.returncode == 1:
            return ToolResult(success=True, result="(no matches)")
        if result.returncode != 0:
            raise ToolExecutionError(result.stderr.strip() or "grep failed")

        prefix = f"{self.root}/"
        lines = [line.removeprefix(prefix) for line in result.stdout.splitlines()]
        shown = "\n".join(lines[:GREP_MAX_RESULTS])
        if len(lines) > GREP_MAX_RESULTS:
            shown += f"\n\n[... {len(lines) - GREP_MAX_RESULTS} more matches truncated]"
        return ToolResult(success=True, result=shown or "(no matches)")

