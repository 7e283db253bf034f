from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FileRecord:
    path: str
    next_hash: bytes
    previous_hash: bytes | None = None
    uploaded: bool = False
