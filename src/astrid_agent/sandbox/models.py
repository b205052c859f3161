"""Data models for the Tool Execution Sandbox."""

from dataclasses import dataclass
from enum import StrEnum


class FileAction(StrEnum):
    """What a mutating tool did to a file."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


@dataclass(frozen=True)
class FileChange:
    """A file mutation reported by write_file or edit_file.

    Attributes:
        path: Path relative to the worktree root, as given by the model.
        content: Full file content after the change.
        action: Whether the file was created, modified or deleted.
    """

    path: str
    content: str
    action: FileAction


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a single tool call.

    Attributes:
        success: Whether the tool call succeeded.
        result: Text fed back into the model conversation.
        file_change: Set only for mutating tools.
    """

    success: bool
    result: str
    file_change: FileChange | None = None
