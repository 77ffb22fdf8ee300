"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_bytes", "is_within", "replace_tree"]


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to path atomically using temp file + replace.

    Concurrent writers to the same path end up last-write-wins; readers never
    observe a partially written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def is_within(root: Path, path: Path) -> bool:
    """True if path resolves to root or somewhere below it."""
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def replace_tree(src: Path, dest: Path) -> int:
    """Replace dest with a copy of src; returns the number of files copied.

    Only dest is removed; its siblings are left untouched.

    Raises:
        OSError: On any copy or removal failure.
    """
    if dest.is_symlink() or dest.is_file():
        dest.unlink()
    elif dest.exists():
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dest)
    return sum(1 for p in dest.rglob("*") if p.is_file())
