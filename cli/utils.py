"""Utility functions for CLI operations."""

import sys
from typing import BinaryIO

from cli.constants import GREEN, RESET


class ProgressReader:
    """File-like wrapper that displays upload progress to stdout."""

    def __init__(self, file: BinaryIO, file_size: int, filename: str):
        """
        Initialize the progress reader.

        Args:
            file: Open binary file to read from
            file_size: Total size of the file in bytes
            filename: Display name for the file
        """
        self._file = file
        self.file_size = file_size
        self.filename = filename
        self._uploaded = 0
        self._finished = False

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size)
        if chunk:
            self._uploaded += len(chunk)
            self._display_progress()
        elif not self._finished:
            self._finish_progress()
        return chunk

    def _display_progress(self) -> None:
        progress = (self._uploaded / self.file_size) * 100 if self.file_size else 100.0
        sys.stdout.write(
            f"\rUploading {self.filename}: {format_file_size(self._uploaded)} / "
            f"{format_file_size(self.file_size)} ({GREEN}{progress:.1f}%{RESET})"
        )
        sys.stdout.flush()

    def _finish_progress(self) -> None:
        self._finished = True
        sys.stdout.write('\n')
        sys.stdout.flush()


def clear_progress_line() -> None:
    """Blank out a partially written progress line."""
    sys.stdout.write('\r' + ' ' * 100 + '\r')
    sys.stdout.flush()


def format_file_size(size_bytes: int) -> str:
    """
    Render a byte count with binary units, e.g. "512 B" or "1.50 MiB".
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = float(size_bytes)
    for unit in ('KiB', 'MiB', 'GiB', 'TiB', 'PiB'):
        size /= 1024.0
        if size < 1024.0 or unit == 'PiB':
            return f"{size:.2f} {unit}"
