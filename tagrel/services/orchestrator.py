"""Pipeline orchestrator.

Sequence for one tag:

    trigger -> cache-restore -> build -> release-create -> asset-upload
            -> docs-generate -> docs-deploy -> cache-save

A rejected trigger stops before any side effect. Any other fatal stage stops
the remaining stages, but cache-save still runs, even when a stage raises.
Cache hooks never take part in the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from tagrel.core.config import PipelineConfig, ReleasePolicy
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol
from tagrel.platform.detection import environment_class
from tagrel.services.build import BuildRunner
from tagrel.services.cache import CacheHooks, FileCacheStore, cache_key, resolve_scopes
from tagrel.services.docs import (
    DeployTarget,
    DirectoryTarget,
    DocGenerator,
    DocsPublisher,
    GitBranchTarget,
)
from tagrel.services.errors import StageError
from tagrel.services.gh import GhHostingClient
from tagrel.services.model import BuildArtifact, BuildOutcome, ReleaseHandle, ReleaseRecord
from tagrel.services.outcome import (
    BuildFailed,
    DocsFailed,
    InputRejected,
    ReleaseFailed,
    RunOutcome,
    Stage,
    Success,
)
from tagrel.services.release import HostingClient, ReleasePublisher, ReleaseState
from tagrel.services.version import VersionRef, derive_version


class BuildStage(Protocol):
    def run(self, profile: str | None = None) -> Result[BuildOutcome, StageError]: ...


class ReleaseStage(Protocol):
    @property
    def state(self) -> ReleaseState: ...

    @property
    def handle(self) -> ReleaseHandle | None: ...

    def publish(
        self, version: VersionRef, artifacts: tuple[BuildArtifact, ...]
    ) -> Result[ReleaseRecord, StageError]: ...


class DocsStage(Protocol):
    def publish(self, version: VersionRef) -> Result[str, StageError]: ...


class CacheStage(Protocol):
    def restore_all(self) -> dict[str, bool]: ...

    def save_all(self) -> dict[str, bool]: ...


@dataclass(frozen=True, slots=True)
class RunPlan:
    """What a run for a tag would do, computed without side effects."""

    tag: str
    title: str
    doc_subpath: str
    policy: ReleasePolicy
    asset_names: tuple[str, ...]
    cache_keys: tuple[str, ...]
    docs_enabled: bool


_DOCS_GENERATE_KINDS = frozenset({"docs_generate_failed", "docs_output_missing"})


class Pipeline:
    def __init__(
        self,
        *,
        config: PipelineConfig,
        console: ConsoleProtocol,
        build: BuildStage,
        release: ReleaseStage,
        docs: DocsStage | None,
        cache: CacheStage | None = None,
        cache_keys: tuple[str, ...] = (),
    ) -> None:
        self._config = config
        self._console = console
        self._build = build
        self._release = release
        self._docs = docs
        self._cache = cache
        self._cache_keys = cache_keys

    def plan(self, ref: str) -> Result[RunPlan, StageError]:
        version = derive_version(ref, tag_pattern=self._config.trigger.tag_pattern)
        if isinstance(version, Err):
            return version
        v = version.value
        return Ok(
            RunPlan(
                tag=v.tag,
                title=v.title(self._config.release.title_template),
                doc_subpath=v.doc_subpath,
                policy=self._config.release.policy,
                asset_names=tuple(a.name for a in self._config.build.artifacts),
                cache_keys=self._cache_keys,
                docs_enabled=self._docs is not None,
            )
        )

    def run(self, ref: str) -> RunOutcome:
        version = derive_version(ref, tag_pattern=self._config.trigger.tag_pattern)
        if isinstance(version, Err):
            return InputRejected(ref=ref, error=version.error)

        v = version.value
        if self._cache is not None:
            self._console.header("cache restore")
            self._cache.restore_all()

        try:
            return self._run_stages(v)
        finally:
            if self._cache is not None:
                self._console.header("cache save")
                self._cache.save_all()

    def _run_stages(self, version: VersionRef) -> RunOutcome:
        self._console.header(f"build ({self._config.build.profile})")
        built = self._build.run(self._config.build.profile)
        if isinstance(built, Err):
            return BuildFailed(version=version, error=built.error)
        for artifact in built.value.artifacts:
            self._console.success(f"built {artifact.name} ({artifact.size} bytes)")

        self._console.header(f"release {version.tag}")
        published = self._release.publish(version, built.value.artifacts)
        if isinstance(published, Err):
            upload_failed = self._release.state == ReleaseState.UPLOAD_FAILED
            stage: Stage = "asset-upload" if upload_failed else "release-create"
            handle = self._release.handle
            return ReleaseFailed(
                version=version,
                error=published.error,
                release_id=version.tag,
                stage=stage,
                release_created=upload_failed,
                visible=handle is not None and not handle.draft,
            )
        release = published.value
        if release.skipped:
            self._console.success(f"release {release.tag} already published")
        else:
            self._console.success(f"released {release.tag}: {', '.join(release.asset_names)}")

        if self._docs is None:
            return Success(version=version, release=release)

        self._console.header(f"docs {version.doc_subpath}")
        docs = self._docs.publish(version)
        if isinstance(docs, Err):
            docs_stage: Stage = (
                "docs-generate" if docs.error.kind in _DOCS_GENERATE_KINDS else "docs-deploy"
            )
            return DocsFailed(
                version=version,
                error=docs.error,
                release=release,
                stage=docs_stage,
                isolated=self._config.docs.isolate,
            )
        self._console.success(f"docs published: {docs.value}")
        return Success(version=version, release=release, docs_location=docs.value)


def create_pipeline(
    *,
    config: PipelineConfig,
    source_root: Path,
    console: ConsoleProtocol,
    policy: ReleasePolicy | None = None,
    site_dir: Path | None = None,
    client: HostingClient | None = None,
) -> Pipeline:
    """Wire the production collaborators for a checkout at source_root.

    `site_dir` publishes docs into a local directory instead of the
    configured branch.
    """
    if policy is not None:
        config = replace(config, release=replace(config.release, policy=policy))

    hooks: CacheHooks | None = None
    keys: tuple[str, ...] = ()
    if config.cache.enabled:
        env = environment_class(config.cache.environment_class)
        cache_root = Path(config.cache.dir).expanduser()
        if not cache_root.is_absolute():
            cache_root = source_root / cache_root
        hooks = CacheHooks(
            store=FileCacheStore(cache_root),
            scopes=resolve_scopes(config.cache.scopes, source_root=source_root),
            environment_class=env,
            console=console,
        )
        keys = tuple(cache_key(env, name) for name in config.cache.scopes)

    hosting = client or GhHostingClient(
        source_root=source_root,
        repo=config.release.repo,
        credential=config.hosting_credential,
    )
    release = ReleasePublisher(
        client=hosting,
        config=config.release,
        console=console,
    )

    docs: DocsPublisher | None = None
    if config.docs.enabled:
        target: DeployTarget
        if site_dir is not None:
            target = DirectoryTarget(site_dir)
        else:
            target = GitBranchTarget(
                config=config.docs,
                source_root=source_root,
                console=console,
                credential=config.deploy_credential,
            )
        docs = DocsPublisher(
            generator=DocGenerator(config=config.docs, source_root=source_root, console=console),
            target=target,
        )

    return Pipeline(
        config=config,
        console=console,
        build=BuildRunner(config=config.build, source_root=source_root, console=console),
        release=release,
        docs=docs,
        cache=hooks,
        cache_keys=keys,
    )
