"""SQLite schema and connection management for the metadata store."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from vault import config

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        size INTEGER NOT NULL,
        hash TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS chunks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        file_id INTEGER NOT NULL,
        message_id TEXT NOT NULL,
        part_num INTEGER NOT NULL,
        UNIQUE(file_id, part_num),
        FOREIGN KEY(file_id) REFERENCES files(id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_chunks_file_id ON chunks(file_id)",
]


def init_database() -> None:
    """Create the database file and its tables if they are missing."""
    Path(config.DATABASE_PATH).parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Open a connection with Row results and foreign keys enforced.

    Chunk rows rely on the foreign key to cascade with their file.
    """
    conn = sqlite3.connect(config.DATABASE_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()
