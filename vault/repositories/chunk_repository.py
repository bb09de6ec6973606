"""Chunk repository for database operations."""

import sqlite3
from dataclasses import dataclass
from typing import List, Sequence

from common.logging_config import get_logger
from vault.database import get_db_connection

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChunkRecord:
    id: int
    file_id: int
    remote_id: str
    part_num: int


class ChunkRepository:
    @staticmethod
    def create_chunk(file_id: int, remote_id: str, part_num: int, conn: sqlite3.Connection) -> None:
        conn.execute(
            "INSERT INTO chunks (file_id, message_id, part_num) VALUES (?, ?, ?)",
            (file_id, remote_id, part_num)
        )

    @staticmethod
    def create_chunks(file_id: int, remote_ids: Sequence[str], conn: sqlite3.Connection) -> None:
        """
        Insert one row per remote id, numbering parts from 1 in sequence order.
        """
        if not remote_ids:
            return

        logger.debug(f"Creating {len(remote_ids)} chunks for file_id={file_id}")
        conn.executemany(
            "INSERT INTO chunks (file_id, message_id, part_num) VALUES (?, ?, ?)",
            [(file_id, remote_id, part_num) for part_num, remote_id in enumerate(remote_ids, start=1)]
        )

    @staticmethod
    def get_chunks_by_file(file_id: int) -> List[ChunkRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, file_id, message_id, part_num
                FROM chunks
                WHERE file_id = ?
                ORDER BY part_num ASC
                """,
                (file_id,)
            )
            rows = cursor.fetchall()

            return [
                ChunkRecord(
                    id=row["id"],
                    file_id=row["file_id"],
                    remote_id=row["message_id"],
                    part_num=row["part_num"],
                )
                for row in rows
            ]
