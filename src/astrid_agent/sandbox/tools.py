"""Provider-neutral tool definitions exposed to the model.

Each definition carries a name, a description and a JSON schema for its
arguments. Executors translate these into their provider's wire format.
"""

from __future__ import annotations

from typing import Any

READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT_FILE = "edit_file"
RUN_BASH = "run_bash"
GLOB_FILES = "glob_files"
GREP_SEARCH = "grep_search"
TASK_COMPLETE = "task_complete"

TOOL_NAMES = (
    READ_FILE,
    WRITE_FILE,
    EDIT_FILE,
    RUN_BASH,
    GLOB_FILES,
    GREP_SEARCH,
    TASK_COMPLETE,
)

# Tools that only inspect the worktree; offered during planning.
READ_ONLY_TOOLS = (READ_FILE, GLOB_FILES, GREP_SEARCH)


def _schema(properties: dict[str, str], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            name: {"type": "string", "description": description}
            for name, description in properties.items()
        },
        "required": required,
    }


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": READ_FILE,
        "description": "Read the contents of a file",
        "parameters": _schema({"file_path": "Path to the file"}, ["file_path"]),
    },
    {
        "name": WRITE_FILE,
        "description": "Write content to a file",
        "parameters": _schema(
            {"file_path": "Path to the file", "content": "Content to write"},
            ["file_path", "content"],
        ),
    },
    {
        "name": EDIT_FILE,
        "description": "Edit a file by replacing old_string with new_string",
        "parameters": _schema(
            {
                "file_path": "Path to the file",
                "old_string": "String to find",
                "new_string": "Replacement string",
            },
            ["file_path", "old_string", "new_string"],
        ),
    },
    {
        "name": RUN_BASH,
        "description": "Run a bash command",
        "parameters": _schema({"command": "The bash command"}, ["command"]),
    },
    {
        "name": GLOB_FILES,
        "description": "Find files matching a glob pattern",
        "parameters": _schema({"pattern": "Glob pattern"}, ["pattern"]),
    },
    {
        "name": GREP_SEARCH,
        "description": "Search for a pattern in files",
        "parameters": _schema(
            {"pattern": "Search pattern", "file_pattern": "Optional glob pattern"},
            ["pattern"],
        ),
    },
    {
        "name": TASK_COMPLETE,
        "description": "Signal that the task is complete",
        "parameters": _schema(
            {
                "commit_message": "Git commit message",
                "pr_title": "PR title",
                "pr_description": "PR description",
            },
            ["commit_message", "pr_title", "pr_description"],
        ),
    },
]


def get_tool_definitions(names: tuple[str, ...] = TOOL_NAMES) -> list[dict[str, Any]]:
    """Return the definitions for the given tool names, in vocabulary order."""
    return [definition for definition in TOOL_DEFINITIONS if definition["name"] in names]
