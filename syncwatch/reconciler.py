"""Decide and apply the remote action for one changed path.

States are derived from the hash store, never stored:

- UNTRACKED: file exists, no record      -> record, upload
- UNCHANGED: digest equals ``next_hash``  -> nothing
- CHANGED:   digest differs               -> shift hashes, upload
- DELETED:   file no longer exists        -> delete remotely if uploaded, drop record

Work for the same path is serialized so hash store updates land in the order
notifications arrived. Different paths proceed concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from syncwatch.errors import FileReadError, SyncWatchError
from syncwatch.hash_store import HashStore
from syncwatch.hasher import digest_async, hex_digest, read_file_bytes
from syncwatch.object_store import ObjectStoreClient, content_type_for


DEFAULT_SWEEP_CONCURRENCY = 6
TEXT_PREVIEW_BYTES = 200

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class ReconcileResult:
    path: str
    action: SyncAction
    ok: bool = True
    error: SyncWatchError | None = None


class KeyedLock:
    """One asyncio.Lock per key, discarded once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
            self._users[key] = 0
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


def normalize_key(path: str) -> str:
    return PurePosixPath(path.replace("\\", "/")).as_posix().lstrip("/")


class Reconciler:
    def __init__(
        self,
        root: Path,
        *,
        store: HashStore,
        object_store: ObjectStoreClient,
        bucket: str,
    ) -> None:
        self.root = root.resolve()
        self.store = store
        self.object_store = object_store
        self.bucket = bucket
        self._locks = KeyedLock()

    def _local_path(self, key: str) -> Path:
        return self.root / Path(key)

    async def handle(self, path: str) -> ReconcileResult:
        key = normalize_key(path)
        async with self._locks.acquire(key):
            return await self._reconcile(key)

    async def sync_all(
        self,
        paths: Iterable[str],
        *,
        max_concurrency: int = DEFAULT_SWEEP_CONCURRENCY,
    ) -> list[ReconcileResult]:
        semaphore = asyncio.Semaphore(max(1, max_concurrency))

        async def _one(path: str) -> ReconcileResult:
            async with semaphore:
                return await self.handle(path)

        return list(await asyncio.gather(*(_one(path) for path in paths)))

    async def _reconcile(self, key: str) -> ReconcileResult:
        local_path = self._local_path(key)
        if local_path.is_dir():
            return ReconcileResult(path=key, action=SyncAction.SKIPPED)
        if not local_path.is_file():
            return await self._handle_deleted(key)

        try:
            data = await read_file_bytes(local_path)
        except OSError as exc:
            error = FileReadError(key, exc)
            logger.error("Error processing file %s: %s", key, exc)
            return ReconcileResult(path=key, action=SyncAction.FAILED, ok=False, error=error)

        current = await digest_async(data)
        record = self.store.lookup(key)

        if record is None:
            logger.info("Initial file save detected for %s", key)
            self.store.record_initial(key, current)
            action = SyncAction.CREATED
        elif record.next_hash == current:
            logger.debug("File %s hasn't changed", key)
            return ReconcileResult(path=key, action=SyncAction.UNCHANGED)
        else:
            logger.info("File %s has changed", key)
            logger.debug("Previous hash: %s", hex_digest(record.next_hash))
            logger.debug("Current hash: %s", hex_digest(current))
            self.store.record_change(key, current)
            action = SyncAction.UPDATED

        self._log_text_preview(key, data)
        result = await self.object_store.put_async(self.bucket, key, data, content_type_for(key))
        if not result.ok:
            logger.error("%s", result.error)
            return ReconcileResult(path=key, action=action, ok=False, error=result.error)

        self.store.mark_uploaded(key)
        logger.info("Uploaded %s (%d bytes) to %s", key, len(data), self.bucket)
        return ReconcileResult(path=key, action=action)

    async def _handle_deleted(self, key: str) -> ReconcileResult:
        logger.info("File %s has been deleted", key)
        record = self.store.lookup(key)
        ok = True
        error = None

        if record is not None and record.uploaded:
            result = await self.object_store.delete_async(self.bucket, key)
            if result.missing:
                logger.info("File %s not found in %s, skipping deletion", key, self.bucket)
            elif result.ok:
                logger.info("File %s deleted from %s", key, self.bucket)
            else:
                logger.error("%s", result.error)
                ok = False
                error = result.error
        else:
            logger.debug("Skipping remote deletion for %s as it was never uploaded", key)

        # Removed whatever the remote delete returned.
        self.store.remove(key)
        return ReconcileResult(path=key, action=SyncAction.DELETED, ok=ok, error=error)

    @staticmethod
    def _log_text_preview(key: str, data: bytes) -> None:
        if PurePosixPath(key).suffix.lower() != ".txt" or not logger.isEnabledFor(logging.DEBUG):
            return
        preview = data[:TEXT_PREVIEW_BYTES].decode("utf-8", errors="replace")
        logger.debug("Contents of %s: %s", key, preview)
