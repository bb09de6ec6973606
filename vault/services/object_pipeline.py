"""Chunked, encrypted object storage on top of a remote backend and the metadata store."""

import asyncio
import hashlib
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional

from common.constants import (
    CHUNK_SIZE_BYTES,
    DELETE_WORKERS,
    REMOTE_LABEL_SUFFIX,
    UPLOAD_DELAY_SECONDS,
)
from common.logging_config import get_logger
from vault import crypto
from vault.backend.base import StorageBackend, UploadNotice
from vault.chunker import aiter_chunks
from vault.config import MissingChunkPolicy
from vault.exceptions import AuthenticationError, BackendError, DuplicateFileError
from vault.metadata_store import MetadataStore
from vault.repositories.chunk_repository import ChunkRecord
from vault.repositories.file_repository import LogicalFile

logger = get_logger(__name__)


@dataclass
class Download:
    """
    A file being reconstructed.

    skipped_parts is filled while chunks is consumed; it lists the part
    numbers that could not be fetched under the SKIP policy.
    """
    file: LogicalFile
    chunks: AsyncIterator[bytes]
    part_count: int
    skipped_parts: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class DeleteReport:
    file_id: int
    chunk_count: int
    failed_remote_ids: List[str]


def remote_label(ciphertext: bytes) -> str:
    """
    Name a remote blob after a digest of its ciphertext, never its plaintext.
    """
    return f"{hashlib.sha256(ciphertext).hexdigest()}{REMOTE_LABEL_SUFFIX}"


class ObjectPipeline:
    """
    Put, Get and Delete for logical files stored as encrypted remote chunks.

    Within one Put or Get chunks are processed strictly in order. Delete
    fans out remote deletions over a bounded number of workers and only
    touches metadata once all of them have returned. Separate operations
    share nothing but the store and the backend.
    """

    def __init__(
        self,
        store: MetadataStore,
        backend: StorageBackend,
        key: bytes,
        chunk_size: int = CHUNK_SIZE_BYTES,
        upload_delay: float = UPLOAD_DELAY_SECONDS,
        delete_workers: int = DELETE_WORKERS,
        missing_chunk_policy: MissingChunkPolicy = MissingChunkPolicy.SKIP,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if delete_workers <= 0:
            raise ValueError("delete_workers must be positive")

        self.store = store
        self.backend = backend
        self.chunk_size = chunk_size
        self.upload_delay = upload_delay
        self.delete_workers = delete_workers
        self.missing_chunk_policy = missing_chunk_policy
        self._key = crypto.validate_key(key)

    async def put(self, name: str, stream, origin: str = "Web") -> LogicalFile:
        """
        Encrypt and upload a stream chunk by chunk, then record it.

        Args:
            name: Unique file name
            stream: Object with a plain or awaitable read(n)
            origin: Front-end that received the file, used in the completion notice

        Returns:
            The stored LogicalFile

        Raises:
            DuplicateFileError: If the name is already taken
            BackendError: If any chunk upload fails (earlier chunks stay orphaned remotely)
            StoreError: If the metadata cannot be written
        """
        if self.store.get_file_by_name(name) is not None:
            raise DuplicateFileError(f"A file named {name!r} already exists")

        logger.info(f"Receiving transmission: {name}")

        hasher = hashlib.sha256()
        remote_ids: List[str] = []
        total_size = 0

        async for plaintext in aiter_chunks(stream, self.chunk_size):
            part_num = len(remote_ids) + 1
            hasher.update(plaintext)
            total_size += len(plaintext)

            ciphertext = crypto.encrypt(plaintext, self._key)

            if remote_ids and self.upload_delay > 0:
                await asyncio.sleep(self.upload_delay)

            try:
                remote_id = await self.backend.upload(remote_label(ciphertext), ciphertext)
            except BackendError as e:
                logger.error(
                    f"Backend rejected chunk {part_num} of {name}: {e}. "
                    f"{len(remote_ids)} uploaded chunk(s) left orphaned"
                )
                raise

            remote_ids.append(remote_id)
            logger.info(f"Chunk {part_num} secured ({len(ciphertext)} bytes)")

        file = self.store.save_file(name, total_size, hasher.hexdigest(), remote_ids)
        logger.info(f"Transmission complete: {name} (ID: #{file.id}, {len(remote_ids)} parts)")

        try:
            self.backend.notify_upload(UploadNotice(name=name, size=total_size, parts=len(remote_ids), origin=origin))
        except Exception as e:
            logger.warning(f"Upload notice for {name} failed: {e}")

        return file

    async def get(self, file_id: int) -> Download:
        """
        Resolve a file and prepare its ordered plaintext stream.

        The returned iterator fetches and decrypts one chunk at a time. A
        chunk that cannot be fetched is skipped or aborts the stream
        depending on missing_chunk_policy; a chunk that fails decryption
        always ends the stream with AuthenticationError.

        Raises:
            NotFoundError: If the file does not exist
        """
        file = self.store.get_file(file_id)
        chunks = self.store.list_chunks(file_id)
        skipped_parts: List[int] = []
        return Download(
            file=file,
            chunks=self._stream_chunks(file, chunks, skipped_parts),
            part_count=len(chunks),
            skipped_parts=skipped_parts,
        )

    async def _stream_chunks(
        self,
        file: LogicalFile,
        chunks: List[ChunkRecord],
        skipped_parts: List[int],
    ) -> AsyncIterator[bytes]:
        logger.info(f"Reconstructing object: {file.name} ({len(chunks)} chunks)")
        bytes_streamed = 0

        for chunk in chunks:
            ciphertext: Optional[bytes]
            try:
                ciphertext = await self.backend.fetch(chunk.remote_id)
            except BackendError as e:
                logger.error(f"Fragment fetch failed: part {chunk.part_num} of {file.name}: {e}")
                ciphertext = None

            if not ciphertext:
                if self.missing_chunk_policy is MissingChunkPolicy.ABORT:
                    raise BackendError(
                        f"Part {chunk.part_num} of {file.name} is missing; "
                        f"delivered {bytes_streamed}/{file.size} bytes before failure"
                    )
                logger.error(f"Fragment missing: part {chunk.part_num} of {file.name}, skipping")
                skipped_parts.append(chunk.part_num)
                continue

            try:
                plaintext = crypto.decrypt(ciphertext, self._key)
            except AuthenticationError:
                logger.error(f"Decryption fault at part {chunk.part_num} of {file.name}")
                raise

            bytes_streamed += len(plaintext)
            yield plaintext

        if skipped_parts:
            logger.warning(
                f"Object {file.name} delivered incomplete: {bytes_streamed}/{file.size} bytes, "
                f"skipped parts {skipped_parts}"
            )
        else:
            logger.info(f"Object {file.name} successfully delivered ({bytes_streamed} bytes)")

    async def delete(self, file_id: int) -> DeleteReport:
        """
        Remove a file's remote chunks in parallel, then its metadata.

        Failed remote deletions are logged and reported but never retried
        and never block the metadata deletion.

        Raises:
            NotFoundError: If the file does not exist
            StoreError: If the metadata deletion fails (remote chunks may already be gone)
        """
        self.store.get_file(file_id)
        chunks = self.store.list_chunks(file_id)

        logger.info(f"Initiating parallel wipe for File ID: {file_id} ({len(chunks)} chunks)")

        semaphore = asyncio.Semaphore(self.delete_workers)

        async def delete_one(chunk: ChunkRecord) -> Optional[str]:
            async with semaphore:
                try:
                    await self.backend.delete(chunk.remote_id)
                    return None
                except Exception as e:
                    logger.warning(f"Remote delete failed for part {chunk.part_num} ({chunk.remote_id}): {e}")
                    return chunk.remote_id

        results = await asyncio.gather(*(delete_one(chunk) for chunk in chunks))
        failed = [remote_id for remote_id in results if remote_id is not None]

        if failed:
            logger.warning(f"{len(failed)}/{len(chunks)} remote chunks of file {file_id} could not be deleted")

        try:
            self.store.delete_file(file_id)
        except Exception as e:
            logger.error(f"Metadata purge failed for file {file_id}: {e}")
            raise

        logger.info(f"File ID {file_id} successfully erased ({len(chunks) - len(failed)}/{len(chunks)} remote chunks)")
        return DeleteReport(file_id=file_id, chunk_count=len(chunks), failed_remote_ids=failed)

    def list_files(self) -> List[LogicalFile]:
        return self.store.list_files()
