"""Utility helper functions for the vault server."""

from datetime import datetime
from typing import Optional


def format_bytes(size: int) -> str:
    """
    Format a byte count with binary units (e.g., "512 B", "7.0 MB").

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


def format_upload_notice(name: str, size: int, parts: int, origin: str, when: Optional[datetime] = None) -> str:
    """
    Render the channel message announcing a completed upload.
    """
    when = when or datetime.now()
    return (
        f"📤 **{origin} Upload Complete**\n"
        f"**File:** `{name}`\n"
        f"**Size:** `{format_bytes(size)}`\n"
        f"**Parts:** {parts}\n"
        f"**Time:** `{when.strftime('%H:%M:%S')}`\n"
        f"**Status:** Encrypted & Locked"
    )
