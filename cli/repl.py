"""Interactive prompt_toolkit loop for the vault CLI."""

import os
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import handle_delete, handle_download, handle_list, handle_upload
from cli.completer import VaultCompleter
from cli.constants import HELP_TEXT, LOGO, PROMPT_TEXT, STYLE, WELCOME_HELP, WELCOME_TITLE
from cli.models import DeleteCommand, DownloadCommand, ListCommand, UploadCommand
from cli.parser import ParseError, parse_command

HANDLERS = {
    UploadCommand: handle_upload,
    ListCommand: handle_list,
    DownloadCommand: handle_download,
    DeleteCommand: handle_delete,
}


class ExitRepl(Exception):
    pass


def clear_screen() -> None:
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def _exit() -> None:
    raise ExitRepl()


def _redraw() -> None:
    clear_screen()
    show_welcome()


BUILTINS = {
    "exit": _exit,
    "help": lambda: print(HELP_TEXT),
    "clear": _redraw,
}


def dispatch_command(cmd_obj) -> str:
    """Run the handler registered for a parsed command."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj)


def repl_loop() -> None:
    session: PromptSession = PromptSession(
        completer=VaultCompleter(), history=InMemoryHistory(), style=STYLE
    )
    _redraw()

    while True:
        try:
            line = session.prompt([("class:prompt", PROMPT_TEXT)]).strip()
            if not line:
                continue

            builtin = BUILTINS.get(line)
            if builtin is not None:
                builtin()
                continue

            print(dispatch_command(parse_command(line)))

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except (ExitRepl, EOFError):
            print("Goodbye!")
            break
