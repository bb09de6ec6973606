"""Interface the object pipeline expects from a remote blob store."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UploadNotice:
    """
    Completion event emitted after a successful upload.
    """
    name: str
    size: int
    parts: int
    origin: str


class StorageBackend(ABC):
    """
    Remote store addressed by opaque identifiers.

    Implementations must be safe for concurrent use by many pipeline
    operations sharing one instance.
    """

    async def start(self) -> None:
        """Acquire connections and background workers."""

    async def close(self) -> None:
        """Release connections and background workers."""

    @abstractmethod
    async def upload(self, label: str, blob: bytes) -> str:
        """
        Store a blob under a display label.

        Returns:
            Remote identifier for later fetch/delete

        Raises:
            BackendError: If the remote service rejects the upload
        """

    @abstractmethod
    async def fetch(self, remote_id: str) -> Optional[bytes]:
        """
        Retrieve a blob.

        Returns:
            Blob content, or None when the remote object has no content

        Raises:
            BackendError: If the remote service cannot be reached
        """

    @abstractmethod
    async def delete(self, remote_id: str) -> bool:
        """
        Delete a blob. Unknown or already-deleted ids are not an error.

        Returns:
            True if something was deleted, False if it was already gone

        Raises:
            BackendError: If the remote service refuses the deletion
        """

    @abstractmethod
    def notify_upload(self, notice: UploadNotice) -> None:
        """
        Queue a completion notice. Must not block and must not raise.
        """
