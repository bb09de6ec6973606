"""Pydantic schemas for file operation endpoints."""

from datetime import datetime
from typing import List

from pydantic import BaseModel


class UploadResponse(BaseModel):
    """Response model for file upload."""
    file_id: int
    name: str
    size: int
    parts: int


class FileMetadataResponse(BaseModel):
    """Response model for file metadata."""
    id: int
    name: str
    size: int
    hash: str
    created_at: datetime


class DeleteResponse(BaseModel):
    """Response model for file deletion."""
    file_id: int
    chunks: int
    failed_remote_deletes: List[str]
