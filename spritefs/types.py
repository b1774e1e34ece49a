"""Type definitions for spritefs.

Pydantic models for command results and filesystem metadata.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileType(str, Enum):
    """Kind of a filesystem entry."""

    UNKNOWN = "unknown"
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


class FileChangeType(str, Enum):
    """Kind of change reported to change listeners."""

    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


class ExecResult(BaseModel):
    """Result of one remote shell command.

    Always produced when the command ran, whatever its exit status.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0


class FileStat(BaseModel):
    """Filesystem entry metadata.

    Attributes:
        type: Entry kind
        size: Size in bytes
        mtime: Last modification time, milliseconds since epoch
        ctime: Last status change time, milliseconds since epoch
    """

    model_config = ConfigDict(frozen=True)

    type: FileType
    size: int = Field(default=0, ge=0)
    mtime: int
    ctime: int


class DirectoryEntry(BaseModel):
    """One entry of a directory listing."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FileType


class FileChangeEvent(BaseModel):
    """A change the provider made to a sprite's filesystem."""

    model_config = ConfigDict(frozen=True)

    type: FileChangeType
    uri: str

