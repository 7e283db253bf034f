"""Shared fixtures for syncwatch tests."""

from __future__ import annotations

import asyncio
import logging

import pytest

from syncwatch.errors import DeleteError, DownloadError, UploadError
from syncwatch.hash_store import HashStore
from syncwatch.object_store import DeleteResult, GetResult, PutResult
from syncwatch.reconciler import Reconciler


BUCKET = "test-bucket"


class FakeObjectStore:
    """In-memory stand-in for ObjectStoreClient's async surface."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], tuple[bytes, str | None]] = {}
        self.put_calls: list[tuple[str, str, bytes, str | None]] = []
        self.delete_calls: list[tuple[str, str]] = []
        self.fail_puts = False
        self.fail_deletes = False
        self.fail_gets = False
        self.put_gate: asyncio.Event | None = None

    async def put_async(self, bucket, key, data, content_type=None):
        self.put_calls.append((bucket, key, data, content_type))
        if self.put_gate is not None:
            await self.put_gate.wait()
        if self.fail_puts:
            return PutResult(key=key, ok=False, error=UploadError(key, ConnectionError("refused")))
        self.objects[(bucket, key)] = (data, content_type)
        return PutResult(key=key, ok=True, etag='"etag"')

    async def delete_async(self, bucket, key):
        self.delete_calls.append((bucket, key))
        if self.fail_deletes:
            return DeleteResult(key=key, ok=False, error=DeleteError(key, ConnectionError("refused")))
        if (bucket, key) not in self.objects:
            return DeleteResult(key=key, ok=True, missing=True)
        del self.objects[(bucket, key)]
        return DeleteResult(key=key, ok=True)

    async def get_async(self, bucket, key):
        if self.fail_gets:
            return GetResult(key=key, ok=False, error=DownloadError(key, ConnectionError("refused")))
        stored = self.objects.get((bucket, key))
        return GetResult(key=key, ok=True, data=None if stored is None else stored[0])


@pytest.fixture(autouse=True)
def _reset_syncwatch_logger():
    yield
    logger = logging.getLogger("syncwatch")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "stories"
    path.mkdir()
    return path


@pytest.fixture
def hash_store():
    return HashStore()


@pytest.fixture
def fake_store():
    return FakeObjectStore()


@pytest.fixture
def reconciler(root, hash_store, fake_store):
    return Reconciler(root, store=hash_store, object_store=fake_store, bucket=BUCKET)


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait():
    return wait_for
