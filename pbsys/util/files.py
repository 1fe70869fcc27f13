# SPDX-License-Identifier: MIT
"""File helpers used by install and clean."""

from __future__ import annotations

import shutil
from pathlib import Path


def copy(src: Path | str, dest: Path | str) -> Path:
    """Copy a file, creating parent directories as needed."""
    dest_path = Path(dest)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest_path)
    return dest_path


def copytree(src: Path | str, dest: Path | str) -> list[Path]:
    """Copy every file below ``src`` into ``dest``, merging directories.

    Returns:
        The copied destination files.
    """
    src_path = Path(src)
    dest_path = Path(dest)
    copied: list[Path] = []
    for path in sorted(src_path.rglob("*")):
        if path.is_file():
            copied.append(copy(path, dest_path / path.relative_to(src_path)))
    return copied


def remove_dir(path: Path | str) -> bool:
    """Remove a directory tree if it exists.

    Returns:
        True if something was removed.
    """
    path = Path(path)
    if not path.is_dir():
        return False
    shutil.rmtree(path)
    return True
