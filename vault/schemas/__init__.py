"""Pydantic schemas for API requests and responses."""

from vault.schemas.files import (
    UploadResponse,
    FileMetadataResponse,
    DeleteResponse,
)
from vault.schemas.common import ErrorResponse

__all__ = [
    "UploadResponse",
    "FileMetadataResponse",
    "DeleteResponse",
    "ErrorResponse",
]
