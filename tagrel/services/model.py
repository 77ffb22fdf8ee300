from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """A file produced by the build, ready to be attached to a release."""

    path: Path
    name: str
    content_type: str

    @property
    def size(self) -> int:
        return self.path.stat().st_size


@dataclass(frozen=True, slots=True)
class BuildOutcome:
    artifacts: tuple[BuildArtifact, ...]
    exit_code: int = 0

    @property
    def artifact_paths(self) -> tuple[Path, ...]:
        return tuple(a.path for a in self.artifacts)


@dataclass(frozen=True, slots=True)
class ReleaseHandle:
    """Upload target returned by the hosting provider for one release."""

    tag: str
    release_id: int
    upload_url: str
    html_url: str | None = None
    # (asset name, asset id) already attached when the handle was fetched
    existing_assets: tuple[tuple[str, int], ...] = ()
    # True when the release existed before this run
    preexisting: bool = False
    draft: bool = False

    def asset_id(self, name: str) -> int | None:
        for asset_name, asset_id in self.existing_assets:
            if asset_name == name:
                return asset_id
        return None


@dataclass(frozen=True, slots=True)
class AssetAttachment:
    release_tag: str
    name: str
    content_type: str
    size: int


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    tag: str
    title: str
    draft: bool
    prerelease: bool
    assets: tuple[AssetAttachment, ...]
    url: str | None = None
    # Release already existed and was left as-is (skip-if-exists policy)
    skipped: bool = False

    @property
    def asset_names(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.assets)


@dataclass(frozen=True, slots=True)
class DocumentationBundle:
    root: Path
    subpath: str

    def files(self) -> list[Path]:
        return sorted(p for p in self.root.rglob("*") if p.is_file())
