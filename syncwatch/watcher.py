from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from watchfiles import Change, awatch

from syncwatch.errors import SubscriptionError
from syncwatch.filters import PathFilter
from syncwatch.reconciler import ReconcileResult, Reconciler


DEFAULT_DEBOUNCE_MS = 200

logger = logging.getLogger(__name__)


def _relative_key(root: Path, raw_path: str) -> str | None:
    try:
        relative = Path(raw_path).relative_to(root)
    except ValueError:
        return None
    key = relative.as_posix()
    return key if key and key != "." else None


async def subscribe(
    root: Path,
    *,
    recursive: bool = True,
    stop_event: asyncio.Event | None = None,
    debounce: int = DEFAULT_DEBOUNCE_MS,
) -> AsyncIterator[tuple[Change, str]]:
    """Yield ``(kind, relative_path)`` for every change under *root* until stopped.

    A subscription cannot be restarted. Failure to establish it, or losing it,
    raises SubscriptionError.
    """
    root = root.resolve()
    if not root.exists():
        raise SubscriptionError(str(root), "path does not exist")
    if not root.is_dir():
        raise SubscriptionError(str(root), "not a directory")

    try:
        async for batch in awatch(
            root,
            recursive=recursive,
            stop_event=stop_event,
            debounce=debounce,
            watch_filter=None,
        ):
            for kind, raw_path in sorted(batch, key=lambda item: (item[1], item[0])):
                key = _relative_key(root, raw_path)
                if key is not None:
                    yield kind, key
    except OSError as exc:
        raise SubscriptionError(str(root), str(exc)) from exc


class DirectoryWatcher:
    """Feed filtered change notifications to the reconciler, one task each."""

    def __init__(
        self,
        root: Path,
        reconciler: Reconciler,
        *,
        path_filter: PathFilter | None = None,
        debounce: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self.root = root.resolve()
        self.reconciler = reconciler
        self.path_filter = path_filter or PathFilter()
        self.debounce = debounce
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task[ReconcileResult | None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def stop(self) -> None:
        self._stop_event.set()

    def dispatch(self, kind: Change, path: str) -> asyncio.Task[ReconcileResult | None] | None:
        if not self.path_filter.accepts(path):
            logger.debug("Ignoring change in file: %s", path)
            return None
        logger.info("Change %s detected in %s", kind.name.lower(), path)
        task = asyncio.create_task(self._process(path), name=f"reconcile:{path}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process(self, path: str) -> ReconcileResult | None:
        try:
            return await self.reconciler.handle(path)
        except Exception:
            logger.exception("Unexpected error while reconciling %s", path)
            return None

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def run(self) -> bool:
        """Watch until stopped. Returns False if the subscription failed."""
        logger.info("Watching %s -> %s", self.root, self.reconciler.bucket)
        try:
            async for kind, path in subscribe(
                self.root,
                stop_event=self._stop_event,
                debounce=self.debounce,
            ):
                self.dispatch(kind, path)
        except SubscriptionError as exc:
            logger.error("%s; file monitoring is disabled", exc)
            return False
        finally:
            await self.drain()
        return True
