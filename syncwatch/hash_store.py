from __future__ import annotations

from dataclasses import replace

from syncwatch.errors import RecordExistsError, RecordMissingError
from syncwatch.models import FileRecord


class HashStore:
    """In-memory tracking state for every observed path under the watched root.

    One instance is built at startup and handed to the reconciler. Nothing is
    persisted: after a restart every file looks new and is uploaded again.
    """

    def __init__(self) -> None:
        self._records: dict[str, FileRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def lookup(self, path: str) -> FileRecord | None:
        record = self._records.get(path)
        return replace(record) if record is not None else None

    def record_initial(self, path: str, hash_value: bytes) -> FileRecord:
        if path in self._records:
            raise RecordExistsError(path)
        record = FileRecord(path=path, next_hash=hash_value)
        self._records[path] = record
        return replace(record)

    def record_change(self, path: str, new_hash: bytes) -> FileRecord:
        record = self._records.get(path)
        if record is None:
            raise RecordMissingError(path)
        record.previous_hash = record.next_hash
        record.next_hash = new_hash
        return replace(record)

    def mark_uploaded(self, path: str) -> None:
        record = self._records.get(path)
        if record is not None:
            record.uploaded = True

    def remove(self, path: str) -> FileRecord | None:
        return self._records.pop(path, None)

    def paths(self) -> list[str]:
        return sorted(self._records)

    def snapshot(self) -> list[FileRecord]:
        return [replace(self._records[path]) for path in self.paths()]
