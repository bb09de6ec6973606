"""Remote blob storage backends."""

from vault.backend.base import StorageBackend, UploadNotice
from vault.backend.discord import DiscordBackend

__all__ = [
    "StorageBackend",
    "UploadNotice",
    "DiscordBackend",
]
