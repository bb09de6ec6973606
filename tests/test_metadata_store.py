"""Integration tests for the metadata store and its repositories."""

import sqlite3
from datetime import datetime

import pytest

from vault.database import get_db_connection
from vault.exceptions import DuplicateFileError, NotFoundError, StoreError
from vault.repositories import ChunkRepository, FileRepository


class TestFileRepository:
    """Test file row operations."""

    def test_create_and_get(self, test_db):
        created = datetime(2024, 1, 2, 3, 4, 5)
        with get_db_connection() as conn:
            file = FileRepository.create_file("a.txt", 10, "abc", created, conn=conn)
            conn.commit()

        loaded = FileRepository.get_by_id(file.id)
        assert loaded == file
        assert FileRepository.get_by_name("a.txt") == file

    def test_get_missing_returns_none(self, test_db):
        assert FileRepository.get_by_id(999) is None
        assert FileRepository.get_by_name("nope") is None

    def test_delete_reports_whether_row_existed(self, test_db):
        with get_db_connection() as conn:
            file = FileRepository.create_file("a.txt", 1, "h", datetime.utcnow(), conn=conn)
            conn.commit()

        assert FileRepository.delete_file(file.id) is True
        assert FileRepository.delete_file(file.id) is False


class TestChunkRepository:
    """Test chunk row operations."""

    def test_chunks_are_returned_in_part_order(self, test_db):
        with get_db_connection() as conn:
            file = FileRepository.create_file("a.bin", 3, "h", datetime.utcnow(), conn=conn)
            ChunkRepository.create_chunk(file.id, "m3", 3, conn=conn)
            ChunkRepository.create_chunk(file.id, "m1", 1, conn=conn)
            ChunkRepository.create_chunk(file.id, "m2", 2, conn=conn)
            conn.commit()

        chunks = ChunkRepository.get_chunks_by_file(file.id)
        assert [c.part_num for c in chunks] == [1, 2, 3]
        assert [c.remote_id for c in chunks] == ["m1", "m2", "m3"]

    def test_duplicate_part_number_is_rejected(self, test_db):
        with get_db_connection() as conn:
            file = FileRepository.create_file("a.bin", 3, "h", datetime.utcnow(), conn=conn)
            ChunkRepository.create_chunk(file.id, "m1", 1, conn=conn)
            with pytest.raises(sqlite3.IntegrityError):
                ChunkRepository.create_chunk(file.id, "m1b", 1, conn=conn)


class TestMetadataStore:
    """Test the store contract used by the pipeline."""

    def test_save_file_records_chunks_from_one(self, store):
        file = store.save_file("movie.mkv", 100, "deadbeef", ["r1", "r2", "r3"])

        chunks = store.list_chunks(file.id)
        assert [(c.part_num, c.remote_id) for c in chunks] == [(1, "r1"), (2, "r2"), (3, "r3")]
        assert store.get_file(file.id) == file

    def test_save_file_without_chunks(self, store):
        file = store.save_file("empty.txt", 0, "e3b0c442", [])
        assert file.size == 0
        assert store.list_chunks(file.id) == []

    def test_list_files_newest_first(self, store):
        first = store.save_file("a", 1, "h", ["r1"])
        second = store.save_file("b", 1, "h", ["r2"])
        third = store.save_file("c", 1, "h", ["r3"])

        assert [f.id for f in store.list_files()] == [third.id, second.id, first.id]

    def test_duplicate_name_raises(self, store):
        store.save_file("report.pdf", 1, "h", ["r1"])

        with pytest.raises(DuplicateFileError):
            store.save_file("report.pdf", 2, "h2", ["r2"])

        assert len(store.list_files()) == 1

    def test_duplicate_name_is_a_store_error(self):
        assert issubclass(DuplicateFileError, StoreError)

    def test_failed_save_leaves_nothing_behind(self, store, monkeypatch):
        def explode(file_id, remote_ids, conn):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(store.chunk_repo, "create_chunks", explode)

        with pytest.raises(StoreError):
            store.save_file("x.bin", 5, "h", ["r1"])

        assert store.list_files() == []
        assert store.get_file_by_name("x.bin") is None

    def test_get_missing_file_raises(self, store):
        with pytest.raises(NotFoundError):
            store.get_file(42)

    def test_list_chunks_of_unknown_file_is_empty(self, store):
        assert store.list_chunks(42) == []

    def test_delete_cascades_to_chunks(self, store):
        file = store.save_file("a", 2, "h", ["r1", "r2"])

        assert store.delete_file(file.id) is True

        assert store.list_chunks(file.id) == []
        with pytest.raises(NotFoundError):
            store.get_file(file.id)

    def test_create_file_and_chunk_records(self, store):
        file_id = store.create_file("manual.bin", 4, "h")
        store.create_chunk_record(file_id, "m1", 1)

        assert [c.remote_id for c in store.list_chunks(file_id)] == ["m1"]

        with pytest.raises(DuplicateFileError):
            store.create_file("manual.bin", 4, "h")

    def test_unreadable_database_raises_store_error(self, test_db, store, monkeypatch):
        monkeypatch.setattr("vault.config.DATABASE_PATH", str(test_db.parent / "missing" / "db.sqlite"))
        with pytest.raises(StoreError):
            store.list_files()
