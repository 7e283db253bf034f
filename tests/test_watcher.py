"""Tests for the directory watcher."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from watchfiles import Change

from syncwatch.errors import SubscriptionError
from syncwatch.filters import build_path_filter
from syncwatch.reconciler import ReconcileResult, SyncAction
from syncwatch.watcher import DirectoryWatcher, subscribe


def _fake_awatch(batches):
    async def fake_awatch(*args, **kwargs):
        for batch in batches:
            yield batch

    return fake_awatch


async def _collect(iterator):
    return [item async for item in iterator]


# ---------------------------------------------------------------------------
# subscribe
# ---------------------------------------------------------------------------

class TestSubscribe:
    @pytest.mark.asyncio
    async def test_yields_relative_posix_paths(self, root):
        resolved = root.resolve()
        batches = [
            {
                (Change.added, str(resolved / "story.txt")),
                (Change.modified, str(resolved / "drafts" / "one.txt")),
            },
            {(Change.deleted, str(resolved / "story.txt"))},
        ]
        with patch("syncwatch.watcher.awatch", _fake_awatch(batches)):
            events = await _collect(subscribe(root))

        assert events == [
            (Change.modified, "drafts/one.txt"),
            (Change.added, "story.txt"),
            (Change.deleted, "story.txt"),
        ]

    @pytest.mark.asyncio
    async def test_drops_paths_outside_root(self, root, tmp_path):
        batches = [{(Change.added, str(tmp_path / "elsewhere.txt")), (Change.added, str(root.resolve()))}]
        with patch("syncwatch.watcher.awatch", _fake_awatch(batches)):
            assert await _collect(subscribe(root)) == []

    @pytest.mark.asyncio
    async def test_passes_recursive_and_stop_event(self, root):
        captured = {}

        async def fake_awatch(*args, **kwargs):
            captured.update(kwargs)
            captured["paths"] = args
            return
            yield

        stop = asyncio.Event()
        with patch("syncwatch.watcher.awatch", fake_awatch):
            await _collect(subscribe(root, stop_event=stop, debounce=50))

        assert captured["paths"] == (root.resolve(),)
        assert captured["recursive"] is True
        assert captured["stop_event"] is stop
        assert captured["debounce"] == 50

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path):
        with pytest.raises(SubscriptionError, match="does not exist"):
            await _collect(subscribe(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_root_is_a_file(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(SubscriptionError, match="not a directory"):
            await _collect(subscribe(path))

    @pytest.mark.asyncio
    async def test_os_errors_become_subscription_errors(self, root):
        async def denied(*args, **kwargs):
            raise PermissionError("permission denied")
            yield

        with patch("syncwatch.watcher.awatch", denied):
            with pytest.raises(SubscriptionError, match="permission denied"):
                await _collect(subscribe(root))


# ---------------------------------------------------------------------------
# DirectoryWatcher
# ---------------------------------------------------------------------------

class TestDirectoryWatcher:
    @pytest.mark.asyncio
    async def test_run_reconciles_filtered_events(self, root, reconciler, hash_store, fake_store):
        resolved = root.resolve()
        (root / "story.txt").write_bytes(b"Hello")
        (root / "story.TMP").write_bytes(b"scratch")
        (root / "~RF3a2b.TMP").write_bytes(b"scratch")
        batches = [
            {
                (Change.added, str(resolved / "story.txt")),
                (Change.added, str(resolved / "story.TMP")),
                (Change.added, str(resolved / "~RF3a2b.TMP")),
            },
            {(Change.modified, str(resolved / "story.txt"))},
        ]
        watcher = DirectoryWatcher(root, reconciler)

        with patch("syncwatch.watcher.awatch", _fake_awatch(batches)):
            assert await watcher.run() is True

        assert watcher.pending == 0
        assert hash_store.paths() == ["story.txt"]
        assert [call[1] for call in fake_store.put_calls] == ["story.txt"]

    @pytest.mark.asyncio
    async def test_user_excludes_are_applied(self, root, reconciler, hash_store, fake_store):
        resolved = root.resolve()
        (root / "image.png").write_bytes(b"\x89PNG")
        batches = [{(Change.added, str(resolved / "image.png"))}]
        watcher = DirectoryWatcher(root, reconciler, path_filter=build_path_filter(None, ["*.png"]))

        with patch("syncwatch.watcher.awatch", _fake_awatch(batches)):
            await watcher.run()

        assert len(hash_store) == 0
        assert fake_store.put_calls == []

    @pytest.mark.asyncio
    async def test_dispatch_ignored_path_returns_none(self, root, reconciler):
        watcher = DirectoryWatcher(root, reconciler)
        assert watcher.dispatch(Change.added, "notes.TMP") is None
        assert watcher.pending == 0

    @pytest.mark.asyncio
    async def test_subscription_failure_is_logged_not_raised(self, tmp_path, reconciler, caplog):
        watcher = DirectoryWatcher(tmp_path / "missing", reconciler)

        with caplog.at_level(logging.ERROR, logger="syncwatch"):
            assert await watcher.run() is False

        assert "file monitoring is disabled" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_stop_watching(self, root, caplog):
        resolved = root.resolve()
        reconciler = MagicMock()
        reconciler.bucket = "test-bucket"
        reconciler.handle = AsyncMock(
            side_effect=[
                RuntimeError("boom"),
                ReconcileResult(path="b.txt", action=SyncAction.CREATED),
            ]
        )
        batches = [
            {(Change.added, str(resolved / "a.txt"))},
            {(Change.added, str(resolved / "b.txt"))},
        ]
        watcher = DirectoryWatcher(root, reconciler)

        with caplog.at_level(logging.ERROR, logger="syncwatch"):
            with patch("syncwatch.watcher.awatch", _fake_awatch(batches)):
                assert await watcher.run() is True

        assert reconciler.handle.await_count == 2
        assert "Unexpected error while reconciling a.txt" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_ends_run(self, root, reconciler):
        async def idle_awatch(*args, stop_event=None, **kwargs):
            while not stop_event.is_set():
                await asyncio.sleep(0.01)
            return
            yield

        watcher = DirectoryWatcher(root, reconciler)
        with patch("syncwatch.watcher.awatch", idle_awatch):
            task = asyncio.create_task(watcher.run())
            await asyncio.sleep(0.05)
            watcher.stop()
            assert await asyncio.wait_for(task, timeout=2) is True
