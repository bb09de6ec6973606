"""Splitting byte streams into bounded-size chunks."""

import inspect
from typing import AsyncIterator, BinaryIO, Iterator


def iter_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """
    Split a readable binary stream into chunks.

    Every chunk is exactly chunk_size bytes except the last, which holds
    the remainder (1..chunk_size bytes). Empty input yields nothing.

    Args:
        stream: Object with a read(n) method
        chunk_size: Maximum chunk length in bytes

    Yields:
        Chunk payloads in stream order
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    while True:
        buffer = bytearray()
        while len(buffer) < chunk_size:
            data = stream.read(chunk_size - len(buffer))
            if not data:
                break
            buffer += data

        if buffer:
            yield bytes(buffer)
        if len(buffer) < chunk_size:
            return


async def aiter_chunks(stream, chunk_size: int) -> AsyncIterator[bytes]:
    """
    Async variant of iter_chunks.

    Accepts streams whose read(n) is either a plain method or a coroutine
    (FastAPI UploadFile, aiohttp StreamReader).

    Args:
        stream: Object with a read(n) method
        chunk_size: Maximum chunk length in bytes

    Yields:
        Chunk payloads in stream order
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    while True:
        buffer = bytearray()
        while len(buffer) < chunk_size:
            data = stream.read(chunk_size - len(buffer))
            if inspect.isawaitable(data):
                data = await data
            if not data:
                break
            buffer += data

        if buffer:
            yield bytes(buffer)
        if len(buffer) < chunk_size:
            return
