from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath

from syncwatch.config import CONFIG_FILENAME


# Scratch files editors and office suites write while saving.
_IGNORE_RULES = (
    re.compile(r"\.TMP$", re.IGNORECASE),
    re.compile(r"\.~TMP$", re.IGNORECASE),
    re.compile(r"~RF[0-9a-f]+\.TMP$", re.IGNORECASE),
)


def _to_posix(path: str) -> str:
    posix = path.strip().replace("\\", "/")
    return posix[2:] if posix.startswith("./") else posix


def _basename(path: str) -> str:
    return _to_posix(path).rsplit("/", 1)[-1]


def should_ignore(filename: str) -> bool:
    """True for editor temp files. Only the last path component is checked."""
    name = _basename(filename)
    return any(rule.search(name) for rule in _IGNORE_RULES)


def _glob_hit(path: str, pattern: str) -> bool:
    if pattern.endswith("/"):
        # Directory prefix, e.g. "drafts/".
        return path.startswith(pattern)
    candidate = PurePosixPath(path)
    return candidate.match(pattern) or candidate.match(f"**/{pattern}")


@dataclass(slots=True, frozen=True)
class PathFilter:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    def matches(self, path: str) -> bool:
        path = _to_posix(path)
        if self.include and not any(_glob_hit(path, pattern) for pattern in self.include):
            return False
        return not any(_glob_hit(path, pattern) for pattern in self.exclude)

    def accepts(self, path: str) -> bool:
        """Temp-file rules and the config file first, then include/exclude globs."""
        if should_ignore(path) or _basename(path) == CONFIG_FILENAME:
            return False
        return self.matches(path)


def _clean(patterns: Iterable[str] | None) -> tuple[str, ...]:
    cleaned = (_to_posix(pattern) for pattern in patterns or ())
    return tuple(pattern for pattern in cleaned if pattern)


def build_path_filter(
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
) -> PathFilter:
    return PathFilter(include=_clean(include), exclude=_clean(exclude))
