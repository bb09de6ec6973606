"""Custom completer for the vault CLI with local path autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class VaultCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local file path completion for the 'upload' argument
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "upload":
            return

        args_typed = len(tokens) - 1 if not is_typing_new_token else len(tokens)
        if args_typed > 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_paths(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str) -> Iterable[Completion]:
        """
        Complete file and directory names relative to the working directory.

        Directories are offered with a trailing '/' so completion can descend.
        """
        if "/" in partial:
            head, _, prefix = partial.rpartition("/")
            base = Path(head or "/")
            shown_head = f"{head}/"
        else:
            base = Path.cwd()
            prefix = partial
            shown_head = ""

        if not base.is_dir():
            return

        for item in sorted(base.iterdir()):
            if item.name.startswith(".") and not prefix.startswith("."):
                continue
            if not item.name.lower().startswith(prefix.lower()):
                continue
            suffix = "/" if item.is_dir() else ""
            yield Completion(f"{shown_head}{item.name}{suffix}", start_position=-len(partial))
