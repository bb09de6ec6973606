"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadCommand:
    """Upload one local file."""

    path: str
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class ListCommand:
    """List stored files."""

    command: Literal["list"] = "list"


@dataclass(frozen=True)
class DownloadCommand:
    """Download file by id."""

    file_id: int
    output_path: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete file by id."""

    file_id: int
    command: Literal["delete"] = "delete"


CommandRequest = (
    UploadCommand
    | ListCommand
    | DownloadCommand
    | DeleteCommand
)
