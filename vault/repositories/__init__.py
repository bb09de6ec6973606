"""Repository layer for data access."""

from vault.repositories.file_repository import FileRepository, LogicalFile
from vault.repositories.chunk_repository import ChunkRepository, ChunkRecord

__all__ = [
    "FileRepository",
    "LogicalFile",
    "ChunkRepository",
    "ChunkRecord",
]
