"""Turns a REPL line into one of the command dataclasses."""

import shlex
from typing import Callable, Dict, List

from cli.models import (
    CommandRequest,
    DeleteCommand,
    DownloadCommand,
    ListCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""


def _file_id(raw: str) -> int:
    """Accept '7' or '#7', the form the list output prints."""
    try:
        file_id = int(raw.lstrip("#"))
    except ValueError:
        raise ParseError(f"Invalid file id: {raw}")
    if file_id <= 0:
        raise ParseError(f"Invalid file id: {raw}")
    return file_id


def _upload(args: List[str]) -> UploadCommand:
    if len(args) != 1:
        raise ParseError("upload requires exactly 1 argument: <path>")
    return UploadCommand(path=args[0])


def _list(args: List[str]) -> ListCommand:
    if args:
        raise ParseError("list takes no arguments")
    return ListCommand()


def _download(args: List[str]) -> DownloadCommand:
    if len(args) not in (1, 2):
        raise ParseError("download requires 1 or 2 arguments: <id> [output_path]")
    return DownloadCommand(file_id=_file_id(args[0]), output_path=args[1] if len(args) == 2 else None)


def _delete(args: List[str]) -> DeleteCommand:
    if len(args) != 1:
        raise ParseError("delete requires exactly 1 argument: <id>")
    return DeleteCommand(file_id=_file_id(args[0]))


PARSERS: Dict[str, Callable[[List[str]], CommandRequest]] = {
    "upload": _upload,
    "list": _list,
    "download": _download,
    "delete": _delete,
}


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Arguments follow shell quoting rules, so paths with spaces can be
    quoted. The command name is case-insensitive.

    Raises:
        ParseError: If command syntax is invalid
    """
    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    parser = PARSERS.get(command_name)
    if parser is None:
        raise ParseError(f"Unknown command: {command_name}")
    return parser(tokens[1:])
