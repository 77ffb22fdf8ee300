"""Trigger ref to VersionRef mapping.

The release identifier keeps the tag exactly as pushed (`v0.3.0`); the
documentation sub-path drops the leading `v` (`0.3.0`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase

from tagrel.core.result import Err, Ok, Result
from tagrel.services.errors import StageError

_REFS_PREFIX_RE = re.compile(r"^refs/[^/]+/")
_SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)
# Characters that cannot appear in a release tag or a docs directory name.
# A docs sub-path is a single path segment, so `/` is rejected as well.
_UNSAFE_RE = re.compile(r"[\s\\/:*?\"<>|~^]|\.\.")


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base


def parse_semver(tag: str) -> SemVer | None:
    m = _SEMVER_RE.match(tag)
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), m.group(4))


@dataclass(frozen=True, slots=True)
class VersionRef:
    """Version identity derived from a pushed tag."""

    tag: str

    @property
    def doc_subpath(self) -> str:
        return self.tag[1:] if self.tag.startswith("v") and len(self.tag) > 1 else self.tag

    @property
    def semver(self) -> SemVer | None:
        return parse_semver(self.tag)

    def title(self, template: str) -> str:
        """Render a release title; `{tag}` and `{version}` are substituted."""
        return template.replace("{tag}", self.tag).replace("{version}", self.doc_subpath)

    def __str__(self) -> str:
        return self.tag


def strip_ref_prefix(ref: str) -> str:
    """`refs/tags/v1.2.3` -> `v1.2.3`; plain tags are returned unchanged."""
    return _REFS_PREFIX_RE.sub("", ref.strip(), count=1)


def derive_version(ref: str, *, tag_pattern: str = "v*") -> Result[VersionRef, StageError]:
    tag = strip_ref_prefix(ref)
    if not tag:
        return Err(
            StageError(
                kind="invalid_tag",
                message="empty tag reference",
                hint="Pass --tag vX.Y.Z or run from a tag push event.",
            )
        )

    if ref.strip().startswith("refs/") and not ref.strip().startswith("refs/tags/"):
        return Err(
            StageError(
                kind="invalid_tag",
                message=f"not a tag reference: {ref}",
                hint="Only tag pushes trigger a release.",
            )
        )

    if not fnmatchcase(tag, tag_pattern):
        return Err(
            StageError(
                kind="invalid_tag",
                message=f"tag does not match '{tag_pattern}': {tag}",
            )
        )

    if _UNSAFE_RE.search(tag) or tag in {"v", "."}:
        return Err(StageError(kind="invalid_tag", message=f"unusable tag name: {tag!r}"))

    return Ok(VersionRef(tag=tag))
