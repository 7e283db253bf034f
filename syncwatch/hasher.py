from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path


DIGEST_SIZE = 32
CHUNK_SIZE = 1024 * 1024


def digest(data: bytes, chunk_size: int = CHUNK_SIZE) -> bytes:
    hasher = hashlib.sha256()
    view = memoryview(data)
    for offset in range(0, len(view), chunk_size):
        hasher.update(view[offset : offset + chunk_size])
    return hasher.digest()


async def digest_async(data: bytes, chunk_size: int = CHUNK_SIZE) -> bytes:
    """Digest *data*, moving buffers larger than one chunk off the event loop."""
    if len(data) <= chunk_size:
        return digest(data, chunk_size)
    return await asyncio.to_thread(digest, data, chunk_size)


def hex_digest(value: bytes | None) -> str:
    return value.hex() if value is not None else "-"


async def read_file_bytes(path: Path) -> bytes:
    # OSError propagates to the caller.
    return await asyncio.to_thread(path.read_bytes)
