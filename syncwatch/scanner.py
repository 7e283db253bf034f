from __future__ import annotations

from pathlib import Path

from syncwatch.filters import PathFilter


def discover_files(root: Path, path_filter: PathFilter | None = None) -> list[str]:
    """Relative POSIX paths of every regular file under *root* that the filter accepts."""
    root = root.resolve()
    path_filter = path_filter or PathFilter()
    found: list[str] = []

    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        relative_path = file_path.relative_to(root).as_posix()
        if not path_filter.accepts(relative_path):
            continue
        found.append(relative_path)

    return found
