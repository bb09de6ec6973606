"""Shared pytest fixtures for all tests."""

import asyncio
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional, Set

import pytest

from cli.config import Config
from vault.backend.base import StorageBackend, UploadNotice
from vault.database import init_database
from vault.exceptions import BackendError
from vault.metadata_store import MetadataStore

TEST_KEY = b"0123456789abcdef0123456789abcdef"


class FakeBackend(StorageBackend):
    """
    In-memory backend with failure injection and call recording.
    """

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.labels: Dict[str, str] = {}
        self.uploads: List[str] = []
        self.deleted: List[str] = []
        self.notices: List[UploadNotice] = []
        self.events: List[str] = []
        self.fail_upload_at: Optional[int] = None
        self.fail_fetch: Set[str] = set()
        self.fail_delete: Set[str] = set()
        self.fail_notify = False
        self.delete_delay = 0.0
        self.active_deletes = 0
        self.max_concurrent_deletes = 0
        self._next_id = 1000

    async def upload(self, label: str, blob: bytes) -> str:
        if self.fail_upload_at is not None and len(self.uploads) + 1 == self.fail_upload_at:
            raise BackendError("upload rejected")
        remote_id = str(self._next_id)
        self._next_id += 1
        self.blobs[remote_id] = blob
        self.labels[remote_id] = label
        self.uploads.append(remote_id)
        return remote_id

    async def fetch(self, remote_id: str) -> Optional[bytes]:
        if remote_id in self.fail_fetch:
            raise BackendError(f"fetch of {remote_id} failed")
        return self.blobs.get(remote_id)

    async def delete(self, remote_id: str) -> bool:
        self.active_deletes += 1
        self.max_concurrent_deletes = max(self.max_concurrent_deletes, self.active_deletes)
        try:
            await asyncio.sleep(self.delete_delay)
            if remote_id in self.fail_delete:
                raise BackendError(f"delete of {remote_id} failed")
            self.deleted.append(remote_id)
            self.events.append(f"delete:{remote_id}")
            return self.blobs.pop(remote_id, None) is not None
        finally:
            self.active_deletes -= 1

    def notify_upload(self, notice: UploadNotice) -> None:
        if self.fail_notify:
            raise RuntimeError("notification channel down")
        self.notices.append(notice)


class BytesStream:
    """
    Readable stream that returns at most max_read bytes per call.
    """

    def __init__(self, data: bytes, max_read: Optional[int] = None):
        self._data = data
        self._pos = 0
        self._max_read = max_read

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        if self._max_read is not None:
            size = min(size, self._max_read)
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


class AsyncBytesStream(BytesStream):
    """
    Same as BytesStream with a coroutine read(), like UploadFile.
    """

    async def read(self, size: int = -1) -> bytes:
        return BytesStream.read(self, size)


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("vault.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def store(test_db) -> MetadataStore:
    return MetadataStore()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def key() -> bytes:
    return TEST_KEY


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .vault directory
    """
    config_dir = tmp_path / '.vault'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


class FakeAttachmentResponse:
    """
    Stands in for a streaming aiohttp response to an attachment URL.
    """

    def __init__(self, data: bytes):
        self.content = AsyncBytesStream(data, max_read=5)
        self.released = False

    def release(self):
        self.released = True


class CommandBackend(FakeBackend):
    """
    FakeBackend plus the attachment and interaction calls the dispatcher uses.
    """

    def __init__(self):
        super().__init__()
        self.attachments: Dict[str, bytes] = {}
        self.responses: List[FakeAttachmentResponse] = []
        self.edits: List[tuple] = []

    async def open_url(self, url):
        if url not in self.attachments:
            raise BackendError("attachment download failed with status 404")
        response = FakeAttachmentResponse(self.attachments[url])
        self.responses.append(response)
        return response

    async def edit_interaction_response(self, application_id, token, content):
        self.edits.append((application_id, token, content))
