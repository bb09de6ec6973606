"""Metadata store: durable file and chunk bookkeeping on top of the repositories."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Sequence

from common.logging_config import get_logger
from vault.database import get_db_connection
from vault.exceptions import DuplicateFileError, NotFoundError, StoreError
from vault.repositories.chunk_repository import ChunkRecord, ChunkRepository
from vault.repositories.file_repository import FileRepository, LogicalFile

logger = get_logger(__name__)


@contextmanager
def _translate_errors(action: str):
    try:
        yield
    except sqlite3.IntegrityError as e:
        if "files.name" in str(e):
            raise DuplicateFileError(f"A file with this name already exists ({action})") from e
        raise StoreError(f"Integrity violation during {action}: {e}") from e
    except sqlite3.Error as e:
        raise StoreError(f"Metadata store failure during {action}: {e}") from e


class MetadataStore:
    """
    Mapping from logical files to their ordered chunk records.

    Safe for concurrent use: every call opens its own connection and SQLite
    serializes writers.
    """

    def __init__(self):
        self.file_repo = FileRepository()
        self.chunk_repo = ChunkRepository()

    def create_file(self, name: str, size: int, file_hash: str) -> int:
        with _translate_errors("create_file"):
            with get_db_connection() as conn:
                try:
                    file = self.file_repo.create_file(name, size, file_hash, datetime.utcnow(), conn=conn)
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        return file.id

    def create_chunk_record(self, file_id: int, remote_id: str, part_num: int) -> None:
        with _translate_errors("create_chunk_record"):
            with get_db_connection() as conn:
                try:
                    self.chunk_repo.create_chunk(file_id, remote_id, part_num, conn=conn)
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise

    def save_file(self, name: str, size: int, file_hash: str, remote_ids: Sequence[str]) -> LogicalFile:
        """
        Persist a file row and its complete chunk set in one transaction.

        Part numbers follow the order of remote_ids, starting at 1. Either
        everything is committed or nothing is.
        """
        with _translate_errors("save_file"):
            with get_db_connection() as conn:
                try:
                    file = self.file_repo.create_file(name, size, file_hash, datetime.utcnow(), conn=conn)
                    self.chunk_repo.create_chunks(file.id, remote_ids, conn=conn)
                    conn.commit()
                except Exception:
                    conn.rollback()
                    logger.error(f"Rolled back metadata for {name!r} ({len(remote_ids)} chunks)")
                    raise

        logger.info(f"Saved metadata for {name!r} [file_id={file.id}] parts={len(remote_ids)}")
        return file

    def list_files(self) -> List[LogicalFile]:
        with _translate_errors("list_files"):
            return self.file_repo.list_files()

    def get_file(self, file_id: int) -> LogicalFile:
        with _translate_errors("get_file"):
            file = self.file_repo.get_by_id(file_id)
        if file is None:
            raise NotFoundError(f"File {file_id} not found")
        return file

    def get_file_by_name(self, name: str) -> Optional[LogicalFile]:
        with _translate_errors("get_file_by_name"):
            return self.file_repo.get_by_name(name)

    def list_chunks(self, file_id: int) -> List[ChunkRecord]:
        with _translate_errors("list_chunks"):
            return self.chunk_repo.get_chunks_by_file(file_id)

    def delete_file(self, file_id: int) -> bool:
        with _translate_errors("delete_file"):
            return self.file_repo.delete_file(file_id)
