"""Tests for the chunked, encrypted object pipeline."""

import asyncio
import hashlib
import os

import pytest

from common.constants import CHUNK_SIZE_BYTES
from conftest import AsyncBytesStream, BytesStream
from vault import crypto
from vault.config import MissingChunkPolicy
from vault.exceptions import (
    AuthenticationError,
    BackendError,
    ConfigurationError,
    DuplicateFileError,
    NotFoundError,
    StoreError,
)
from vault.services.object_pipeline import ObjectPipeline, remote_label

SMALL_CHUNK = 64


def make_pipeline(store, backend, key, **kwargs):
    kwargs.setdefault("chunk_size", SMALL_CHUNK)
    kwargs.setdefault("upload_delay", 0)
    return ObjectPipeline(store, backend, key, **kwargs)


async def collect(download) -> bytes:
    return b"".join([chunk async for chunk in download.chunks])


class TestConstruction:
    """Test pipeline argument validation."""

    def test_rejects_bad_key(self, store, backend):
        with pytest.raises(ConfigurationError):
            ObjectPipeline(store, backend, b"too short")

    @pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"delete_workers": 0}])
    def test_rejects_non_positive_limits(self, store, backend, key, kwargs):
        with pytest.raises(ValueError):
            ObjectPipeline(store, backend, key, **kwargs)

    def test_defaults(self, store, backend, key):
        pipeline = ObjectPipeline(store, backend, key)
        assert pipeline.chunk_size == CHUNK_SIZE_BYTES
        assert pipeline.delete_workers == 8
        assert pipeline.missing_chunk_policy is MissingChunkPolicy.SKIP


class TestPut:
    """Test uploads."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("length", [0, 1, SMALL_CHUNK - 1, SMALL_CHUNK, SMALL_CHUNK + 1, 5 * SMALL_CHUNK + 3])
    async def test_round_trip(self, store, backend, key, length):
        pipeline = make_pipeline(store, backend, key)
        data = os.urandom(length)

        file = await pipeline.put(f"file-{length}.bin", BytesStream(data))
        download = await pipeline.get(file.id)

        assert await collect(download) == data
        assert download.skipped_parts == []
        assert download.part_count == -(-length // SMALL_CHUNK)
        assert file.size == length
        assert file.hash == hashlib.sha256(data).hexdigest()

    @pytest.mark.asyncio
    async def test_accepts_coroutine_reader(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        data = os.urandom(3 * SMALL_CHUNK)

        file = await pipeline.put("async.bin", AsyncBytesStream(data, max_read=10))

        assert await collect(await pipeline.get(file.id)) == data

    @pytest.mark.asyncio
    async def test_three_chunk_file_at_production_chunk_size(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key, chunk_size=CHUNK_SIZE_BYTES)
        data = os.urandom(2 * CHUNK_SIZE_BYTES + 1)

        file = await pipeline.put("big.bin", BytesStream(data))

        chunks = store.list_chunks(file.id)
        assert file.size == 2 * CHUNK_SIZE_BYTES + 1
        assert [c.part_num for c in chunks] == [1, 2, 3]
        sizes = [len(backend.blobs[c.remote_id]) - crypto.NONCE_SIZE - crypto.TAG_SIZE for c in chunks]
        assert sizes == [CHUNK_SIZE_BYTES, CHUNK_SIZE_BYTES, 1]

    @pytest.mark.asyncio
    async def test_remote_blobs_are_ciphertext_named_by_digest(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        data = b"plaintext marker " * 10

        file = await pipeline.put("secret.txt", BytesStream(data))

        for chunk in store.list_chunks(file.id):
            blob = backend.blobs[chunk.remote_id]
            assert b"plaintext marker" not in blob
            assert backend.labels[chunk.remote_id] == remote_label(blob)
            assert backend.labels[chunk.remote_id].endswith(".vault")
            assert "secret" not in backend.labels[chunk.remote_id]

    @pytest.mark.asyncio
    async def test_duplicate_name_fails_before_upload(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        await pipeline.put("dup.txt", BytesStream(b"first"))
        uploads_before = len(backend.uploads)

        with pytest.raises(DuplicateFileError):
            await pipeline.put("dup.txt", BytesStream(b"second"))

        assert len(backend.uploads) == uploads_before

    @pytest.mark.asyncio
    async def test_failed_upload_writes_no_metadata(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        backend.fail_upload_at = 3

        with pytest.raises(BackendError):
            await pipeline.put("broken.bin", BytesStream(os.urandom(5 * SMALL_CHUNK)))

        assert store.get_file_by_name("broken.bin") is None
        assert store.list_files() == []
        assert len(backend.uploads) == 2
        assert backend.notices == []

    @pytest.mark.asyncio
    async def test_store_failure_surfaces_after_upload(self, store, backend, key, monkeypatch):
        pipeline = make_pipeline(store, backend, key)

        def fail_save(*args, **kwargs):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "save_file", fail_save)

        with pytest.raises(StoreError):
            await pipeline.put("a.bin", BytesStream(b"x" * 10))
        assert backend.notices == []

    @pytest.mark.asyncio
    async def test_notice_is_emitted(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)

        await pipeline.put("note.bin", BytesStream(b"x" * (SMALL_CHUNK + 1)), origin="Bot")

        assert len(backend.notices) == 1
        notice = backend.notices[0]
        assert (notice.name, notice.size, notice.parts, notice.origin) == ("note.bin", SMALL_CHUNK + 1, 2, "Bot")

    @pytest.mark.asyncio
    async def test_notice_failure_does_not_fail_put(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        backend.fail_notify = True

        file = await pipeline.put("quiet.bin", BytesStream(b"data"))

        assert store.get_file(file.id).name == "quiet.bin"

    @pytest.mark.asyncio
    async def test_uploads_are_paced(self, store, backend, key, monkeypatch):
        sleeps = []
        real_sleep = asyncio.sleep

        async def fake_sleep(delay, *args, **kwargs):
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr("vault.services.object_pipeline.asyncio.sleep", fake_sleep)
        pipeline = make_pipeline(store, backend, key, upload_delay=0.8)

        await pipeline.put("paced.bin", BytesStream(os.urandom(4 * SMALL_CHUNK)))

        assert sleeps == [0.8, 0.8, 0.8]

    @pytest.mark.asyncio
    async def test_concurrent_puts_are_independent(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        payloads = {f"f{i}.bin": os.urandom(3 * SMALL_CHUNK + i) for i in range(5)}

        files = await asyncio.gather(
            *(pipeline.put(name, AsyncBytesStream(data, max_read=17)) for name, data in payloads.items())
        )

        for file in files:
            assert await collect(await pipeline.get(file.id)) == payloads[file.name]


class TestGet:
    """Test downloads and missing-chunk handling."""

    @pytest.mark.asyncio
    async def test_unknown_file(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        with pytest.raises(NotFoundError):
            await pipeline.get(404)

    @pytest.mark.asyncio
    async def test_skip_policy_omits_missing_chunk(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        data = os.urandom(3 * SMALL_CHUNK)
        file = await pipeline.put("holes.bin", BytesStream(data))
        chunks = store.list_chunks(file.id)
        del backend.blobs[chunks[1].remote_id]

        download = await pipeline.get(file.id)
        result = await collect(download)

        assert result == data[:SMALL_CHUNK] + data[2 * SMALL_CHUNK:]
        assert download.skipped_parts == [2]

    @pytest.mark.asyncio
    async def test_skip_policy_treats_fetch_error_as_missing(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        data = os.urandom(2 * SMALL_CHUNK)
        file = await pipeline.put("flaky.bin", BytesStream(data))
        backend.fail_fetch.add(store.list_chunks(file.id)[0].remote_id)

        download = await pipeline.get(file.id)

        assert await collect(download) == data[SMALL_CHUNK:]
        assert download.skipped_parts == [1]

    @pytest.mark.asyncio
    async def test_abort_policy_stops_at_missing_chunk(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key, missing_chunk_policy=MissingChunkPolicy.ABORT)
        data = os.urandom(3 * SMALL_CHUNK)
        file = await pipeline.put("strict.bin", BytesStream(data))
        del backend.blobs[store.list_chunks(file.id)[1].remote_id]

        download = await pipeline.get(file.id)
        received = []
        with pytest.raises(BackendError):
            async for chunk in download.chunks:
                received.append(chunk)

        assert received == [data[:SMALL_CHUNK]]

    @pytest.mark.asyncio
    async def test_tampered_chunk_ends_stream(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        data = os.urandom(3 * SMALL_CHUNK)
        file = await pipeline.put("tampered.bin", BytesStream(data))
        target = store.list_chunks(file.id)[1].remote_id
        corrupted = bytearray(backend.blobs[target])
        corrupted[-1] ^= 0xFF
        backend.blobs[target] = bytes(corrupted)

        download = await pipeline.get(file.id)
        received = []
        with pytest.raises(AuthenticationError):
            async for chunk in download.chunks:
                received.append(chunk)

        assert received == [data[:SMALL_CHUNK]]

    @pytest.mark.asyncio
    async def test_wrong_key_fails_integrity(self, store, backend, key):
        writer = make_pipeline(store, backend, key)
        reader = make_pipeline(store, backend, b"z" * 32)
        file = await writer.put("keyed.bin", BytesStream(b"payload"))

        with pytest.raises(AuthenticationError):
            await collect(await reader.get(file.id))


class TestDelete:
    """Test parallel deletion."""

    @pytest.mark.asyncio
    async def test_delete_removes_remote_then_metadata(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        file = await pipeline.put("gone.bin", BytesStream(os.urandom(17 * SMALL_CHUNK)))
        remote_ids = [c.remote_id for c in store.list_chunks(file.id)]

        original_delete_file = store.delete_file
        snapshot = {}

        def recording_delete_file(file_id):
            snapshot["deleted_before_metadata"] = list(backend.deleted)
            return original_delete_file(file_id)

        store.delete_file = recording_delete_file
        backend.delete_delay = 0.01

        report = await pipeline.delete(file.id)

        assert sorted(snapshot["deleted_before_metadata"]) == sorted(remote_ids)
        assert report.chunk_count == 17
        assert report.failed_remote_ids == []
        assert 1 < backend.max_concurrent_deletes <= 8
        with pytest.raises(NotFoundError):
            await pipeline.get(file.id)

    @pytest.mark.asyncio
    async def test_worker_limit_is_respected(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key, delete_workers=3)
        file = await pipeline.put("limited.bin", BytesStream(os.urandom(10 * SMALL_CHUNK)))
        backend.delete_delay = 0.01

        await pipeline.delete(file.id)

        assert backend.max_concurrent_deletes == 3

    @pytest.mark.asyncio
    async def test_remote_failures_do_not_block_metadata_delete(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        file = await pipeline.put("partial.bin", BytesStream(os.urandom(4 * SMALL_CHUNK)))
        failing = store.list_chunks(file.id)[2].remote_id
        backend.fail_delete.add(failing)

        report = await pipeline.delete(file.id)

        assert report.failed_remote_ids == [failing]
        assert store.get_file_by_name("partial.bin") is None

    @pytest.mark.asyncio
    async def test_delete_of_already_gone_remote_is_success(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        file = await pipeline.put("twice.bin", BytesStream(b"x" * 10))
        backend.blobs.clear()

        report = await pipeline.delete(file.id)

        assert report.failed_remote_ids == []

    @pytest.mark.asyncio
    async def test_delete_unknown_file(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        with pytest.raises(NotFoundError):
            await pipeline.delete(12345)
        assert backend.deleted == []

    @pytest.mark.asyncio
    async def test_delete_empty_file(self, store, backend, key):
        pipeline = make_pipeline(store, backend, key)
        file = await pipeline.put("empty.bin", BytesStream(b""))

        report = await pipeline.delete(file.id)

        assert report.chunk_count == 0
        assert pipeline.list_files() == []
