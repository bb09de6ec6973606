"""File operation API routes."""

import re
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import StreamingResponse

from common.logging_config import get_logger
from vault.exceptions import EmptyUploadError
from vault.schemas.files import DeleteResponse, FileMetadataResponse, UploadResponse
from vault.service_locator import get_pipeline

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Files"])

_UNSAFE_FALLBACK = re.compile(r'[^\x20-\x7e]|["\\]')


def content_disposition(name: str) -> str:
    """
    Attachment header for any stored name.

    Header values must be latin-1, so the plain filename is an ASCII
    fallback and the exact UTF-8 name travels in filename* (RFC 6266).
    """
    fallback = _UNSAFE_FALLBACK.sub("_", name) or "download.bin"
    encoded = quote(name, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


@router.post("/upload", response_model=UploadResponse)
async def upload_file(file: Optional[UploadFile] = File(None)):
    """
    Upload a file; it is chunked, encrypted and stored remotely.

    Parameters:
        - file: File to upload (multipart/form-data)

    Returns:
        - file_id, name, size and number of stored parts

    Raises:
        - 400: No file part in the request
        - 409: A file with the same name already exists
        - 502: Backend rejected a chunk
        - 500: Metadata store failure
    """
    if file is None or not file.filename:
        raise EmptyUploadError("Upload request has no file part")

    pipeline = get_pipeline()
    try:
        stored = await pipeline.put(file.filename, file, origin="Web")
    finally:
        await file.close()

    return UploadResponse(
        file_id=stored.id,
        name=stored.name,
        size=stored.size,
        parts=-(-stored.size // pipeline.chunk_size),
    )


@router.get("/files", response_model=List[FileMetadataResponse])
async def list_files():
    """
    List stored files, most recent first.
    """
    return [
        FileMetadataResponse(
            id=f.id,
            name=f.name,
            size=f.size,
            hash=f.hash,
            created_at=f.created_at,
        )
        for f in get_pipeline().list_files()
    ]


@router.get("/download/{file_id}")
async def download_file(file_id: int):
    """
    Stream a file back, decrypted, in chunk order.

    Raises:
        - 404: File not found
    """
    download = await get_pipeline().get(file_id)

    return StreamingResponse(
        download.chunks,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(download.file.name),
        }
    )


async def _delete(file_id: int) -> DeleteResponse:
    report = await get_pipeline().delete(file_id)
    return DeleteResponse(
        file_id=report.file_id,
        chunks=report.chunk_count,
        failed_remote_deletes=report.failed_remote_ids,
    )


@router.post("/delete/{file_id}", response_model=DeleteResponse)
async def delete_file(file_id: int):
    """
    Delete a file's remote chunks and then its metadata.

    Raises:
        - 404: File not found
        - 500: Metadata purge failed (remote chunks may already be gone)
    """
    return await _delete(file_id)


@router.delete("/files/{file_id}", response_model=DeleteResponse)
async def delete_file_rest(file_id: int):
    """
    Same as POST /api/delete/{file_id}.
    """
    return await _delete(file_id)
