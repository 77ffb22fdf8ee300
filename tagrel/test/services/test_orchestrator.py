"""Tests for the pipeline orchestrator, with fakes for every collaborator."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from tagrel.core.config import BuildConfig, DocsConfig, PipelineConfig, ReleaseConfig, ReleasePolicy
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import MockConsole
from tagrel.services.errors import StageError, StageErrorKind
from tagrel.services.model import (
    AssetAttachment,
    BuildArtifact,
    BuildOutcome,
    ReleaseHandle,
    ReleaseRecord,
)
from tagrel.services.orchestrator import Pipeline, create_pipeline
from tagrel.services.outcome import BuildFailed, DocsFailed, InputRejected, ReleaseFailed, Success
from tagrel.services.release import ReleasePublisher
from tagrel.services.version import VersionRef


class Journal:
    """Shared, ordered record of collaborator calls."""

    def __init__(self) -> None:
        self.events: list[str] = []


class FakeBuild:
    def __init__(self, journal: Journal, artifact: Path, *, fail: bool = False) -> None:
        self._journal = journal
        self._artifact = artifact
        self._fail = fail

    def run(self, profile: str | None = None) -> Result[BuildOutcome, StageError]:
        self._journal.events.append(f"build {profile}")
        if self._fail:
            return Err(StageError(kind="build_failed", message="build failed (exit 2)", returncode=2))
        self._artifact.write_bytes(b"\x7fELF binary")
        return Ok(
            BuildOutcome(
                artifacts=(
                    BuildArtifact(
                        path=self._artifact, name="app", content_type="application/octet-stream"
                    ),
                )
            )
        )


class FakeHost:
    """Remembers releases across runs, like the real provider would."""

    def __init__(self, journal: Journal, *, fail_upload: bool = False) -> None:
        self._journal = journal
        self.fail_upload = fail_upload
        self.releases: dict[str, list[str]] = {}
        self.titles: dict[str, str] = {}
        self.draft = False

    def find_release(self, tag: str) -> Result[ReleaseHandle | None, StageError]:
        self._journal.events.append(f"find {tag}")
        if tag not in self.releases:
            return Ok(None)
        return Ok(ReleaseHandle(tag=tag, release_id=1, upload_url="u", preexisting=True))

    def create_release(
        self, *, tag: str, title: str, draft: bool, prerelease: bool
    ) -> Result[ReleaseHandle, StageError]:
        self._journal.events.append(f"create {tag}")
        if tag in self.releases:
            return Err(StageError(kind="release_exists", message=f"release already exists: {tag}"))
        self.releases[tag] = []
        self.titles[tag] = title
        return Ok(ReleaseHandle(tag=tag, release_id=1, upload_url="u", draft=self.draft))

    def upload_asset(
        self, handle: ReleaseHandle, artifact: BuildArtifact, *, clobber: bool = False
    ) -> Result[AssetAttachment, StageError]:
        self._journal.events.append(f"upload {artifact.name} {artifact.content_type}")
        if self.fail_upload:
            return Err(StageError(kind="upload_failed", message=f"failed to upload {artifact.name}"))
        self.releases[handle.tag].append(artifact.name)
        return Ok(AssetAttachment(handle.tag, artifact.name, artifact.content_type, artifact.size))


class FakeDocs:
    def __init__(self, journal: Journal, *, fail: StageErrorKind | None = None) -> None:
        self._journal = journal
        self._fail = fail
        self.published: list[str] = []

    def publish(self, version: VersionRef) -> Result[str, StageError]:
        self._journal.events.append(f"docs {version.doc_subpath}")
        if self._fail is not None:
            return Err(StageError(kind=self._fail, message="docs failed"))
        self.published.append(version.doc_subpath)
        return Ok(f"gh-pages:{version.doc_subpath}")


class RaisingDocs:
    def publish(self, version: VersionRef) -> Result[str, StageError]:
        raise PermissionError(13, "Permission denied", "target/doc")


class FakeCache:
    def __init__(self, journal: Journal) -> None:
        self._journal = journal

    def restore_all(self) -> dict[str, bool]:
        self._journal.events.append("cache restore")
        return {"cargo-build": False}

    def save_all(self) -> dict[str, bool]:
        self._journal.events.append("cache save")
        return {"cargo-build": True}


class Harness:
    def __init__(
        self,
        tmp_path: Path,
        *,
        policy: ReleasePolicy = "fail",
        isolate: bool = True,
        build_fails: bool = False,
        upload_fails: bool = False,
        docs_fail: StageErrorKind | None = None,
        host: FakeHost | None = None,
        with_docs: bool = True,
    ) -> None:
        self.journal = Journal()
        self.console = MockConsole()
        self.host = host or FakeHost(self.journal, fail_upload=upload_fails)
        self.host._journal = self.journal
        self.config = PipelineConfig(
            release=ReleaseConfig(policy=policy),
            docs=DocsConfig(isolate=isolate),
        )
        self.docs = FakeDocs(self.journal, fail=docs_fail)
        self.pipeline = Pipeline(
            config=self.config,
            console=self.console,
            build=FakeBuild(self.journal, tmp_path / "app", fail=build_fails),
            release=ReleasePublisher(
                client=self.host, config=self.config.release, console=self.console
            ),
            docs=self.docs if with_docs else None,
            cache=FakeCache(self.journal),
            cache_keys=("linux-cargo-build",),
        )

    @property
    def events(self) -> list[str]:
        return self.journal.events


class TestSuccess:
    def test_full_run(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)

        outcome = h.pipeline.run("refs/tags/v0.3.0")

        assert isinstance(outcome, Success)
        assert outcome.status == "success"
        assert outcome.release_id == "v0.3.0"
        assert outcome.release_public is True
        assert outcome.release.title == "Release v0.3.0"
        assert outcome.release.asset_names == ("app",)
        assert outcome.docs_location == "gh-pages:0.3.0"
        assert h.events == [
            "cache restore",
            "build release",
            "create v0.3.0",
            "upload app application/octet-stream",
            "docs 0.3.0",
            "cache save",
        ]
        assert h.host.titles == {"v0.3.0": "Release v0.3.0"}
        assert h.console.headers == [
            "cache restore",
            "build (release)",
            "release v0.3.0",
            "docs 0.3.0",
            "cache save",
        ]

    def test_docs_disabled(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, with_docs=False)
        outcome = h.pipeline.run("v0.3.0")
        assert isinstance(outcome, Success)
        assert outcome.docs_location is None
        assert not any(e.startswith("docs") for e in h.events)


class TestInputRejected:
    @pytest.mark.parametrize("ref", ["refs/heads/main", "nightly", ""])
    def test_no_side_effects(self, tmp_path: Path, ref: str) -> None:
        h = Harness(tmp_path)

        outcome = h.pipeline.run(ref)

        assert isinstance(outcome, InputRejected)
        assert outcome.status == "input-rejected"
        assert outcome.stage == "trigger"
        assert h.events == []
        assert h.console.outputs == []


class TestBuildFailed:
    def test_skips_release_and_docs_but_saves_cache(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, build_fails=True)

        outcome = h.pipeline.run("v0.3.0")

        assert isinstance(outcome, BuildFailed)
        assert outcome.status == "build-failed"
        assert outcome.error.returncode == 2
        assert h.events == ["cache restore", "build release", "cache save"]
        assert h.host.releases == {}


class TestReleaseFailed:
    def test_rerun_conflict(self, tmp_path: Path) -> None:
        journal = Journal()
        host = FakeHost(journal)
        first = Harness(tmp_path, host=host)
        assert isinstance(first.pipeline.run("v0.3.0"), Success)

        second = Harness(tmp_path, host=host)
        outcome = second.pipeline.run("v0.3.0")

        assert isinstance(outcome, ReleaseFailed)
        assert outcome.status == "release-failed"
        assert outcome.release_id == "v0.3.0"
        assert outcome.stage == "release-create"
        assert outcome.release_created is False
        assert outcome.error.kind == "release_exists"
        # build and cache steps still completed; docs did not run
        assert second.events == ["cache restore", "build release", "create v0.3.0", "cache save"]

    def test_rerun_skip_if_exists(self, tmp_path: Path) -> None:
        host = FakeHost(Journal())
        Harness(tmp_path, host=host).pipeline.run("v0.3.0")

        second = Harness(tmp_path, host=host, policy="skip-if-exists")
        outcome = second.pipeline.run("v0.3.0")

        assert isinstance(outcome, Success)
        assert outcome.release.skipped is True
        assert "create v0.3.0" not in second.events
        assert not any(e.startswith("upload") for e in second.events)
        assert "docs 0.3.0" in second.events

    def test_upload_failure_skips_docs(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, upload_fails=True)

        outcome = h.pipeline.run("v0.3.0")

        assert isinstance(outcome, ReleaseFailed)
        assert outcome.stage == "asset-upload"
        assert outcome.release_created is True
        assert outcome.release_public is True
        assert h.docs.published == []
        assert not any(e.startswith("docs") for e in h.events)
        assert h.events[-1] == "cache save"

    def test_upload_failure_on_existing_release_is_public(self, tmp_path: Path) -> None:
        host = FakeHost(Journal())
        Harness(tmp_path, host=host).pipeline.run("v0.3.0")
        host.fail_upload = True

        outcome = Harness(tmp_path, host=host, policy="overwrite-assets").pipeline.run("v0.3.0")

        assert isinstance(outcome, ReleaseFailed)
        assert outcome.stage == "asset-upload"
        assert outcome.release_public is True

    def test_upload_failure_on_draft_is_not_public(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, upload_fails=True)
        h.host.draft = True

        outcome = h.pipeline.run("v0.3.0")

        assert isinstance(outcome, ReleaseFailed)
        assert outcome.release_created is True
        assert outcome.release_public is False


class TestDocsFailed:
    def test_isolated_is_partial_success(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, docs_fail="docs_deploy_failed")

        outcome = h.pipeline.run("v0.3.0")

        assert isinstance(outcome, DocsFailed)
        assert outcome.status == "partial-success"
        assert outcome.stage == "docs-deploy"
        assert outcome.release_public is True
        assert outcome.release_id == "v0.3.0"
        assert h.host.releases == {"v0.3.0": ["app"]}
        assert h.events[-1] == "cache save"

    def test_not_isolated_is_docs_failed(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, isolate=False, docs_fail="docs_generate_failed")

        outcome = h.pipeline.run("v0.3.0")

        assert isinstance(outcome, DocsFailed)
        assert outcome.status == "docs-failed"
        assert outcome.stage == "docs-generate"

    def test_output_missing_is_generate_stage(self, tmp_path: Path) -> None:
        h = Harness(tmp_path, docs_fail="docs_output_missing")
        outcome = h.pipeline.run("v0.3.0")
        assert isinstance(outcome, DocsFailed)
        assert outcome.stage == "docs-generate"


class TestCacheSave:
    def test_runs_when_a_stage_raises(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)
        pipeline = Pipeline(
            config=h.config,
            console=h.console,
            build=FakeBuild(h.journal, tmp_path / "app"),
            release=ReleasePublisher(client=h.host, config=h.config.release, console=h.console),
            docs=RaisingDocs(),
            cache=FakeCache(h.journal),
        )

        with pytest.raises(PermissionError):
            pipeline.run("v0.3.0")

        assert h.events[-1] == "cache save"
        assert h.console.headers[-1] == "cache save"


class TestPlan:
    def test_plan_has_no_side_effects(self, tmp_path: Path) -> None:
        h = Harness(tmp_path)

        result = h.pipeline.plan("refs/tags/v0.3.0")

        assert isinstance(result, Ok)
        plan = result.value
        assert plan.tag == "v0.3.0"
        assert plan.title == "Release v0.3.0"
        assert plan.doc_subpath == "0.3.0"
        assert plan.policy == "fail"
        assert plan.asset_names == ("kvs",)
        assert plan.cache_keys == ("linux-cargo-build",)
        assert plan.docs_enabled is True
        assert h.events == []

    def test_plan_rejects_bad_tag(self, tmp_path: Path) -> None:
        result = Harness(tmp_path).pipeline.plan("refs/heads/main")
        assert isinstance(result, Err)
        assert result.error.kind == "invalid_tag"


class TestCreatePipeline:
    def test_policy_override_and_cache_keys(self, tmp_path: Path) -> None:
        pipeline = create_pipeline(
            config=PipelineConfig(build=BuildConfig()),
            source_root=tmp_path,
            console=MockConsole(),
            policy="overwrite-assets",
            client=FakeHost(Journal()),
        )
        result = pipeline.plan("v0.3.0")
        assert isinstance(result, Ok)
        assert result.value.policy == "overwrite-assets"
        assert len(result.value.cache_keys) == 3
        suffixes = ("-cargo-registry", "-cargo-index", "-cargo-build")
        assert all(key.endswith(suffixes) for key in result.value.cache_keys)

    def test_cache_and_docs_disabled(self, tmp_path: Path) -> None:
        config = PipelineConfig()
        config = replace(
            config,
            cache=replace(config.cache, enabled=False),
            docs=replace(config.docs, enabled=False),
        )
        pipeline = create_pipeline(
            config=config, source_root=tmp_path, console=MockConsole(), client=FakeHost(Journal())
        )
        result = pipeline.plan("v0.3.0")
        assert isinstance(result, Ok)
        assert result.value.cache_keys == ()
        assert result.value.docs_enabled is False


def test_release_record_draft_is_not_public() -> None:
    record = ReleaseRecord(tag="v1.0.0", title="t", draft=True, prerelease=False, assets=())
    assert Success(version=VersionRef("v1.0.0"), release=record).release_public is False


def test_status_and_stage_are_not_constructor_arguments() -> None:
    record = ReleaseRecord(tag="v1.0.0", title="t", draft=False, prerelease=False, assets=())
    with pytest.raises(TypeError):
        Success(version=VersionRef("v1.0.0"), release=record, status="build-failed")  # type: ignore[call-arg]
    with pytest.raises(TypeError):
        BuildFailed(
            version=VersionRef("v1.0.0"),
            error=StageError(kind="build_failed", message="x"),
            stage="docs-deploy",  # type: ignore[call-arg]
        )
    assert Success.status == "success"
    assert BuildFailed.stage == "build"
