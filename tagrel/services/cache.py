"""Best-effort cache of toolchain directories between pipeline runs.

Each scope (dependency registry, dependency index, build output) is a
directory archived as one tar.gz blob under a coarse key made of the
environment class and the scope name. A missing or broken entry only makes
the next build slower; nothing in here can fail a run.

Usage:
    hooks = CacheHooks(store=FileCacheStore(root), scopes=..., ...)
    hooks.restore_all()   # before the build
    ...
    hooks.save_all()      # after everything else, whatever the outcome
"""

from __future__ import annotations

import contextlib
import io
import os
import re
import shutil
import tarfile
import zlib
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.platform.files import atomic_write_bytes, is_within
from tagrel.services.errors import CacheError

__all__ = [
    "CacheHooks",
    "CacheScope",
    "CacheStore",
    "FileCacheStore",
    "cache_key",
    "pack_dir",
    "unpack_into",
]

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def cache_key(environment_class: str, scope: str) -> str:
    """Coarse, run-independent key: `linux-cargo-registry`."""
    return f"{environment_class}-{scope}"


class CacheStore(Protocol):
    def restore(self, scope: str, key: str) -> bytes | None:
        """Return the stored blob, or None on a miss or any read failure."""
        ...

    def save(self, scope: str, key: str, data: bytes) -> Result[None, CacheError]: ...


class FileCacheStore:
    """Cache blobs stored as files under `root/<scope>/<key>.tar.gz`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _blob_path(self, scope: str, key: str) -> Path | None:
        if not _NAME_RE.match(scope) or not _NAME_RE.match(key):
            return None
        return self.root / scope / f"{key}.tar.gz"

    def restore(self, scope: str, key: str) -> bytes | None:
        path = self._blob_path(scope, key)
        if path is None:
            return None
        try:
            return path.read_bytes()
        except OSError:
            return None

    def save(self, scope: str, key: str, data: bytes) -> Result[None, CacheError]:
        path = self._blob_path(scope, key)
        if path is None:
            return Err(CacheError(scope=scope, message=f"invalid cache key: {scope}/{key}"))
        try:
            atomic_write_bytes(path, data)
        except OSError as e:
            return Err(CacheError(scope=scope, message=f"write failed: {e}"))
        return Ok(None)


def pack_dir(path: Path) -> bytes:
    """Archive the contents of a directory as tar.gz (paths relative to it).

    Raises:
        OSError: If the directory cannot be read.
        tarfile.TarError: On archive errors.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for child in sorted(path.iterdir()):
            tar.add(child, arcname=child.name)
    return buf.getvalue()


def unpack_into(data: bytes, dest: Path) -> int:
    """Extract a cache blob over dest; returns the number of files written.

    Existing files not in the archive are kept. Non-regular members and
    members escaping dest are skipped.

    Raises:
        OSError: On write failures.
        EOFError: If the blob is truncated.
        zlib.error: If the compressed stream is corrupt.
        tarfile.TarError: If the blob is not a valid archive.
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()
    count = 0
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        for member in tar.getmembers():
            if not member.isreg():
                continue
            rel = PurePosixPath(member.name)
            if rel.is_absolute() or ".." in rel.parts:
                continue
            target = dest.joinpath(*rel.parts)
            if not is_within(root, target):
                continue

            src = tar.extractfile(member)
            if src is None:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)

            mode = member.mode & 0o777
            if mode:
                with contextlib.suppress(OSError):
                    os.chmod(target, mode)
            count += 1
    return count


@dataclass(frozen=True, slots=True)
class CacheScope:
    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class ScopeReport:
    scope: str
    ok: bool
    detail: str


def resolve_scopes(scopes: Mapping[str, str], *, source_root: Path) -> tuple[CacheScope, ...]:
    """Expand `~` and anchor relative scope paths at the source root."""
    out: list[CacheScope] = []
    for name, raw in scopes.items():
        p = Path(raw).expanduser()
        if not p.is_absolute():
            p = source_root / p
        out.append(CacheScope(name=name, path=p))
    return tuple(out)


class CacheHooks:
    """Pre/post pipeline hooks around the cache store.

    Every scope is handled independently: one scope failing is reported as a
    warning and the others still proceed.
    """

    def __init__(
        self,
        *,
        store: CacheStore,
        scopes: tuple[CacheScope, ...],
        environment_class: str,
        console: ConsoleProtocol,
        max_workers: int = 4,
    ) -> None:
        self._store = store
        self._scopes = scopes
        self._env = environment_class
        self._console = console
        self._max_workers = max_workers

    @property
    def scopes(self) -> tuple[CacheScope, ...]:
        return self._scopes

    def key_for(self, scope: CacheScope) -> str:
        return cache_key(self._env, scope.name)

    def _restore_one(self, scope: CacheScope) -> ScopeReport:
        key = self.key_for(scope)
        data = self._store.restore(scope.name, key)
        if data is None:
            return ScopeReport(scope.name, False, f"miss ({key})")
        try:
            count = unpack_into(data, scope.path)
        except (OSError, EOFError, zlib.error, tarfile.TarError) as e:
            return ScopeReport(scope.name, False, f"unreadable entry {key}: {e}")
        return ScopeReport(scope.name, True, f"hit ({key}, {count} files)")

    def _save_one(self, scope: CacheScope) -> ScopeReport:
        key = self.key_for(scope)
        if not scope.path.is_dir():
            return ScopeReport(scope.name, False, f"nothing to save ({scope.path})")
        try:
            data = pack_dir(scope.path)
        except (OSError, zlib.error, tarfile.TarError) as e:
            return ScopeReport(scope.name, False, f"archive failed: {e}")

        saved = self._store.save(scope.name, key, data)
        if isinstance(saved, Err):
            return ScopeReport(scope.name, False, saved.error.message)
        return ScopeReport(scope.name, True, f"saved ({key}, {len(data)} bytes)")

    def restore_all(self) -> dict[str, bool]:
        """Restore every scope concurrently; returns scope -> hit."""
        if not self._scopes:
            return {}
        # Scopes are disjoint directories, so restores do not interfere.
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            reports = list(pool.map(self._restore_one, self._scopes))

        for r in reports:
            if r.ok:
                self._console.print(f"cache {r.scope}: {r.detail}", Style.DIM)
            elif r.detail.startswith("miss"):
                self._console.print(f"cache {r.scope}: {r.detail}, cold run", Style.DIM)
            else:
                self._console.warning(f"cache {r.scope}: {r.detail}")
        return {r.scope: r.ok for r in reports}

    def save_all(self) -> dict[str, bool]:
        """Save every scope sequentially; returns scope -> saved."""
        out: dict[str, bool] = {}
        for scope in self._scopes:
            r = self._save_one(scope)
            if r.ok:
                self._console.print(f"cache {r.scope}: {r.detail}", Style.DIM)
            elif r.detail.startswith("nothing"):
                self._console.print(f"cache {r.scope}: {r.detail}", Style.DIM)
            else:
                self._console.warning(f"cache {r.scope}: {r.detail}")
            out[r.scope] = r.ok
        return out
