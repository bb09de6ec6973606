"""File repository for database operations."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from vault.database import get_db_connection

logger = get_logger(__name__)

_COLUMNS = "id, name, size, hash, created_at"


@dataclass(frozen=True)
class LogicalFile:
    id: int
    name: str
    size: int
    hash: str
    created_at: datetime


def _row_to_file(row: sqlite3.Row) -> LogicalFile:
    return LogicalFile(
        id=row["id"],
        name=row["name"],
        size=row["size"],
        hash=row["hash"] or "",
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class FileRepository:
    @staticmethod
    def create_file(
        name: str,
        size: int,
        file_hash: str,
        created_at: datetime,
        conn: sqlite3.Connection,
    ) -> LogicalFile:
        """
        Insert a file row inside the caller's transaction.
        """
        cursor = conn.cursor()
        cursor.execute(
            """
            INSERT INTO files (name, size, hash, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (name, size, file_hash, created_at.isoformat())
        )
        return LogicalFile(
            id=cursor.lastrowid,
            name=name,
            size=size,
            hash=file_hash,
            created_at=created_at,
        )

    @staticmethod
    def get_by_id(file_id: int) -> Optional[LogicalFile]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM files WHERE id = ?", (file_id,))
            row = cursor.fetchone()
            return _row_to_file(row) if row else None

    @staticmethod
    def get_by_name(name: str) -> Optional[LogicalFile]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM files WHERE name = ?", (name,))
            row = cursor.fetchone()
            return _row_to_file(row) if row else None

    @staticmethod
    def list_files() -> List[LogicalFile]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM files ORDER BY created_at DESC, id DESC")
            return [_row_to_file(row) for row in cursor.fetchall()]

    @staticmethod
    def delete_file(file_id: int) -> bool:
        """
        Delete a file row; chunk rows go with it through ON DELETE CASCADE.

        Returns:
            True if a row was removed
        """
        logger.debug(f"Deleting file [file_id={file_id}]")
        with get_db_connection() as conn:
            try:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM files WHERE id = ?", (file_id,))
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error(f"Failed to delete file [file_id={file_id}]: {e}", exc_info=True)
                raise

            logger.info(f"File metadata deleted [file_id={file_id}] rows={cursor.rowcount}")
            return cursor.rowcount > 0
