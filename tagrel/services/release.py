"""Release stage: create the release for a tag, then attach the artifacts.

State machine:

    NOT_STARTED -> RELEASE_CREATED -> ASSETS_UPLOADING -> ASSETS_UPLOADED
    NOT_STARTED -> CREATE_FAILED
    ASSETS_UPLOADING -> UPLOAD_FAILED

A partially published release (created, some upload failed) is left in place
for the operator; nothing here deletes remote state.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum, auto
from typing import Protocol

from tagrel.core.config import ReleaseConfig
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol, Style
from tagrel.services.errors import StageError
from tagrel.services.model import AssetAttachment, BuildArtifact, ReleaseHandle, ReleaseRecord
from tagrel.services.version import VersionRef


class ReleaseState(Enum):
    NOT_STARTED = auto()
    RELEASE_CREATED = auto()
    ASSETS_UPLOADING = auto()
    ASSETS_UPLOADED = auto()
    CREATE_FAILED = auto()
    UPLOAD_FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    def __str__(self) -> str:
        return self.name.lower()


_TERMINAL = frozenset(
    {ReleaseState.ASSETS_UPLOADED, ReleaseState.CREATE_FAILED, ReleaseState.UPLOAD_FAILED}
)

_TRANSITIONS: dict[ReleaseState, frozenset[ReleaseState]] = {
    ReleaseState.NOT_STARTED: frozenset({ReleaseState.RELEASE_CREATED, ReleaseState.CREATE_FAILED}),
    ReleaseState.RELEASE_CREATED: frozenset({ReleaseState.ASSETS_UPLOADING}),
    ReleaseState.ASSETS_UPLOADING: frozenset(
        {ReleaseState.ASSETS_UPLOADED, ReleaseState.UPLOAD_FAILED}
    ),
}


class ReleaseTracker:
    """Tracks one release through its states; rejects illegal transitions."""

    def __init__(self) -> None:
        self.state = ReleaseState.NOT_STARTED
        self.history: list[ReleaseState] = [ReleaseState.NOT_STARTED]

    def advance(self, to: ReleaseState) -> None:
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if to not in allowed:
            raise AssertionError(f"illegal release transition: {self.state} -> {to}")
        self.state = to
        self.history.append(to)


class HostingClient(Protocol):
    def find_release(self, tag: str) -> Result[ReleaseHandle | None, StageError]: ...

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        draft: bool,
        prerelease: bool,
    ) -> Result[ReleaseHandle, StageError]: ...

    def upload_asset(
        self,
        handle: ReleaseHandle,
        artifact: BuildArtifact,
        *,
        clobber: bool = False,
    ) -> Result[AssetAttachment, StageError]: ...


def check_unique_names(artifacts: tuple[BuildArtifact, ...]) -> Result[None, StageError]:
    counts = Counter(a.name for a in artifacts)
    dupes = sorted(name for name, n in counts.items() if n > 1)
    if dupes:
        return Err(
            StageError(
                kind="duplicate_asset",
                message="asset names must be unique per release",
                hint="Duplicated: " + ", ".join(dupes),
            )
        )
    return Ok(None)


class ReleasePublisher:
    """Publish one release and its assets according to a ReleasePolicy.

    Policies for a tag that already has a release:
    - fail: create unconditionally; the provider's conflict is a failure.
    - skip-if-exists: the existing release counts as already published.
    - overwrite-assets: reuse the release and replace same-named assets.
    """

    def __init__(
        self,
        *,
        client: HostingClient,
        config: ReleaseConfig,
        console: ConsoleProtocol,
    ) -> None:
        self._client = client
        self._config = config
        self._console = console
        self.tracker = ReleaseTracker()
        self.handle: ReleaseHandle | None = None

    @property
    def state(self) -> ReleaseState:
        return self.tracker.state

    def publish(
        self,
        version: VersionRef,
        artifacts: tuple[BuildArtifact, ...],
    ) -> Result[ReleaseRecord, StageError]:
        self.tracker = ReleaseTracker()
        self.handle = None
        title = version.title(self._config.title_template)

        unique = check_unique_names(artifacts)
        if isinstance(unique, Err):
            self.tracker.advance(ReleaseState.CREATE_FAILED)
            return unique

        handle = self._obtain_release(version, title)
        if isinstance(handle, Err):
            self.tracker.advance(ReleaseState.CREATE_FAILED)
            return handle
        self.handle = handle.value
        self.tracker.advance(ReleaseState.RELEASE_CREATED)

        if handle.value.preexisting and self._config.policy == "skip-if-exists":
            self._console.print(f"release {version.tag} already exists; skipping upload", Style.DIM)
            self.tracker.advance(ReleaseState.ASSETS_UPLOADING)
            self.tracker.advance(ReleaseState.ASSETS_UPLOADED)
            return Ok(self._record(version, title, handle.value, (), skipped=True))

        self.tracker.advance(ReleaseState.ASSETS_UPLOADING)
        clobber = self._config.policy == "overwrite-assets"
        uploaded: list[AssetAttachment] = []
        # One failure stops the remaining uploads.
        for artifact in artifacts:
            self._console.print(
                f"upload {artifact.name} ({artifact.content_type}) -> {version.tag}", Style.DIM
            )
            result = self._client.upload_asset(handle.value, artifact, clobber=clobber)
            if isinstance(result, Err):
                self.tracker.advance(ReleaseState.UPLOAD_FAILED)
                return result
            uploaded.append(result.value)

        self.tracker.advance(ReleaseState.ASSETS_UPLOADED)
        return Ok(self._record(version, title, handle.value, tuple(uploaded)))

    def _obtain_release(self, version: VersionRef, title: str) -> Result[ReleaseHandle, StageError]:
        if self._config.policy != "fail":
            existing = self._client.find_release(version.tag)
            if isinstance(existing, Err):
                return existing
            if existing.value is not None:
                return Ok(existing.value)

        self._console.print(f"create release {version.tag}: {title}", Style.DIM)
        return self._client.create_release(
            tag=version.tag,
            title=title,
            draft=self._config.draft,
            prerelease=self._config.prerelease,
        )

    def _record(
        self,
        version: VersionRef,
        title: str,
        handle: ReleaseHandle,
        assets: tuple[AssetAttachment, ...],
        *,
        skipped: bool = False,
    ) -> ReleaseRecord:
        return ReleaseRecord(
            tag=version.tag,
            title=title,
            draft=self._config.draft,
            prerelease=self._config.prerelease,
            assets=assets,
            url=handle.html_url,
            skipped=skipped,
        )
