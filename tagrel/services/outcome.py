"""Outcome of one pipeline run, one variant per stopping point.

Operators and tests match on the variant to know which stage failed and
whether the binary release is already public.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal

from tagrel.services.errors import StageError
from tagrel.services.model import ReleaseRecord
from tagrel.services.version import VersionRef

RunStatus = Literal[
    "success",
    "input-rejected",
    "build-failed",
    "release-failed",
    "docs-failed",
    "partial-success",
]
Stage = Literal[
    "trigger",
    "cache-restore",
    "build",
    "release-create",
    "asset-upload",
    "docs-generate",
    "docs-deploy",
    "cache-save",
]


@dataclass(frozen=True, slots=True)
class Success:
    version: VersionRef
    release: ReleaseRecord
    docs_location: str | None = None

    status: ClassVar[RunStatus] = "success"
    stage: ClassVar[Stage | None] = None

    @property
    def release_public(self) -> bool:
        return not self.release.draft

    @property
    def release_id(self) -> str:
        return self.release.tag


@dataclass(frozen=True, slots=True)
class InputRejected:
    ref: str
    error: StageError

    status: ClassVar[RunStatus] = "input-rejected"
    stage: ClassVar[Stage] = "trigger"
    release_public: ClassVar[bool] = False
    release_id: ClassVar[None] = None


@dataclass(frozen=True, slots=True)
class BuildFailed:
    version: VersionRef
    error: StageError

    status: ClassVar[RunStatus] = "build-failed"
    stage: ClassVar[Stage] = "build"
    release_public: ClassVar[bool] = False
    release_id: ClassVar[None] = None


@dataclass(frozen=True, slots=True)
class ReleaseFailed:
    """Release creation or an asset upload failed.

    `release_created` tells the operator a release record exists remotely
    (possibly with some assets) and needs manual inspection. `visible` is
    set when that record is a non-draft release, new or from an earlier run.
    """

    version: VersionRef
    error: StageError
    release_id: str
    stage: Stage
    release_created: bool = False
    visible: bool = False

    status: ClassVar[RunStatus] = "release-failed"

    @property
    def release_public(self) -> bool:
        return self.release_created and self.visible


@dataclass(frozen=True, slots=True)
class DocsFailed:
    """The release is published; documentation generation or deploy failed.

    With `isolated` (default) this is a partial success: the binary release
    is complete and public.
    """

    version: VersionRef
    error: StageError
    release: ReleaseRecord
    stage: Stage
    isolated: bool = True

    @property
    def status(self) -> RunStatus:
        return "partial-success" if self.isolated else "docs-failed"

    @property
    def release_public(self) -> bool:
        return not self.release.draft

    @property
    def release_id(self) -> str:
        return self.release.tag


RunOutcome = Success | InputRejected | BuildFailed | ReleaseFailed | DocsFailed

