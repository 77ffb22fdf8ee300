from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

import tagrel.cli.commands.run_cmd as run_cmd
from tagrel import __version__
from tagrel.cli.app import app
from tagrel.core.result import Err, Ok, Result
from tagrel.services.errors import StageError
from tagrel.services.model import AssetAttachment, BuildArtifact, BuildOutcome, ReleaseHandle
from tagrel.services.orchestrator import Pipeline
from tagrel.services.release import ReleasePublisher
from tagrel.services.version import VersionRef

runner = CliRunner()


class FakeClient:
    instances: list[FakeClient] = []

    def __init__(
        self,
        *,
        source_root: Path,
        repo: str | None = None,
        credential: str | None = None,
        gh_installed: bool = True,
    ) -> None:
        self.credential = credential
        self.gh_installed = gh_installed
        self.checked = False
        self.created: list[str] = []
        FakeClient.instances.append(self)

    def ensure_available(self) -> Result[None, StageError]:
        self.checked = True
        if not self.gh_installed:
            return Err(StageError(kind="gh_missing", message="gh: missing"))
        return Ok(None)

    def ensure_auth(self) -> Result[None, StageError]:
        return Ok(None)

    def find_release(self, tag: str) -> Result[ReleaseHandle | None, StageError]:
        return Ok(None)

    def create_release(
        self, *, tag: str, title: str, draft: bool, prerelease: bool
    ) -> Result[ReleaseHandle, StageError]:
        self.created.append(tag)
        return Ok(ReleaseHandle(tag=tag, release_id=1, upload_url="u"))

    def upload_asset(
        self, handle: ReleaseHandle, artifact: BuildArtifact, *, clobber: bool = False
    ) -> Result[AssetAttachment, StageError]:
        return Ok(AssetAttachment(handle.tag, artifact.name, artifact.content_type, artifact.size))


class FakeBuild:
    def __init__(self, root: Path) -> None:
        self._root = root

    def run(self, profile: str | None = None) -> Result[BuildOutcome, StageError]:
        path = self._root / "kvs"
        path.write_bytes(b"bin")
        return Ok(BuildOutcome(artifacts=(BuildArtifact(path, "kvs", "application/octet-stream"),)))


class FakeDocs:
    def __init__(self, fail: bool) -> None:
        self._fail = fail

    def publish(self, version: VersionRef) -> Result[str, StageError]:
        if self._fail:
            return Err(StageError(kind="docs_deploy_failed", message="push rejected"))
        return Ok(f"gh-pages:{version.doc_subpath}")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_REF", "GH_TOKEN", "GITHUB_TOKEN", "TAGREL_DEPLOY_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    FakeClient.instances.clear()


def _install_fakes(
    monkeypatch: pytest.MonkeyPatch,
    *,
    gh_installed: bool = True,
    docs_fail: bool = False,
) -> dict[str, Any]:
    seen: dict[str, Any] = {}

    def fake_client(**kwargs: Any) -> FakeClient:
        return FakeClient(gh_installed=gh_installed, **kwargs)

    def fake_create_pipeline(**kwargs: Any) -> Pipeline:
        seen.update(kwargs)
        config = kwargs["config"]
        if kwargs.get("policy") is not None:
            config = replace(config, release=replace(config.release, policy=kwargs["policy"]))
        seen["effective_config"] = config
        return Pipeline(
            config=config,
            console=kwargs["console"],
            build=FakeBuild(kwargs["source_root"]),
            release=ReleasePublisher(
                client=kwargs["client"], config=config.release, console=kwargs["console"]
            ),
            docs=FakeDocs(docs_fail) if config.docs.enabled else None,
        )

    monkeypatch.setattr(run_cmd, "GhHostingClient", fake_client)
    monkeypatch.setattr(run_cmd, "create_pipeline", fake_create_pipeline)
    return seen


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch)

    result = runner.invoke(app, ["run", "--tag", "refs/tags/v0.3.0", "--root", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "status: success" in result.output
    assert FakeClient.instances[0].created == ["v0.3.0"]


def test_run_uses_github_ref(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch)
    monkeypatch.setenv("GITHUB_REF", "refs/tags/v1.2.3")

    result = runner.invoke(app, ["run", "--root", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert FakeClient.instances[0].created == ["v1.2.3"]


def test_run_without_tag(tmp_path: Path) -> None:
    result = runner.invoke(app, ["run", "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert "no tag given" in result.output


def test_run_rejects_branch_before_env_checks(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _install_fakes(monkeypatch, gh_installed=False)

    result = runner.invoke(app, ["run", "--tag", "refs/heads/main", "--root", str(tmp_path)])

    assert result.exit_code == 1
    assert "input-rejected" in result.output
    assert FakeClient.instances[0].checked is False
    assert FakeClient.instances[0].created == []


def test_run_gh_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch, gh_installed=False)

    result = runner.invoke(app, ["run", "--tag", "v0.3.0", "--root", str(tmp_path)])

    assert result.exit_code == 2
    assert FakeClient.instances[0].created == []


def test_run_docs_failure_isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch, docs_fail=True)

    result = runner.invoke(app, ["run", "--tag", "v0.3.0", "--root", str(tmp_path)])

    assert result.exit_code == 0
    assert "partial-success" in result.output


def test_run_docs_failure_not_isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_fakes(monkeypatch, docs_fail=True)

    result = runner.invoke(
        app, ["run", "--tag", "v0.3.0", "--root", str(tmp_path), "--no-isolate-docs"]
    )

    assert result.exit_code == 5
    assert "docs-failed" in result.output


def test_run_skip_docs_and_policy(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _install_fakes(monkeypatch, docs_fail=True)

    result = runner.invoke(
        app,
        [
            "run",
            "--tag",
            "v0.3.0",
            "--root",
            str(tmp_path),
            "--skip-docs",
            "--no-cache",
            "--policy",
            "skip-if-exists",
        ],
    )

    assert result.exit_code == 0, result.output
    assert seen["policy"] == "skip-if-exists"
    assert seen["config"].docs.enabled is False
    assert seen["config"].cache.enabled is False


def test_credentials_come_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _install_fakes(monkeypatch)
    monkeypatch.setenv("GITHUB_TOKEN", "host-token")
    monkeypatch.setenv("TAGREL_DEPLOY_TOKEN", "deploy-token")

    result = runner.invoke(app, ["run", "--tag", "v0.3.0", "--root", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert seen["config"].hosting_credential == "host-token"
    assert seen["config"].deploy_credential == "deploy-token"
    assert FakeClient.instances[0].credential == "host-token"
    assert "host-token" not in result.output


def test_invalid_config(tmp_path: Path) -> None:
    (tmp_path / "tagrel.toml").write_text('[release]\npolicy = "nope"\n', encoding="utf-8")
    result = runner.invoke(app, ["run", "--tag", "v0.3.0", "--root", str(tmp_path)])
    assert result.exit_code == 1
    assert "Invalid config structure" in result.output


def test_missing_explicit_config(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["plan", "--tag", "v0.3.0", "--root", str(tmp_path), "--config", str(tmp_path / "x.toml")],
    )
    assert result.exit_code == 1
    assert "config file not found" in result.output


def test_plan(tmp_path: Path) -> None:
    (tmp_path / "tagrel.toml").write_text(
        '[cache]\nenvironment_class = "ci"\n\n[cache.scopes]\ncargo-build = "target"\n',
        encoding="utf-8",
    )
    result = runner.invoke(app, ["plan", "--tag", "v0.3.0", "--root", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Release v0.3.0" in result.output
    assert "gh-pages:0.3.0" in result.output
    assert "ci-cargo-build" in result.output


def test_plan_rejects_bad_tag(tmp_path: Path) -> None:
    result = runner.invoke(app, ["plan", "--tag", "nightly", "--root", str(tmp_path)])
    assert result.exit_code == 1


def test_cache_save_then_restore(tmp_path: Path) -> None:
    (tmp_path / "tagrel.toml").write_text(
        '[cache]\nenvironment_class = "ci"\n\n[cache.scopes]\ncargo-build = "target"\n',
        encoding="utf-8",
    )
    (tmp_path / "target" / "release").mkdir(parents=True)
    (tmp_path / "target" / "release" / "kvs").write_bytes(b"bin")

    saved = runner.invoke(app, ["cache", "save", "--root", str(tmp_path)])
    assert saved.exit_code == 0, saved.output
    assert "saved 1/1 scopes" in saved.output
    assert (tmp_path / ".tagrel-cache" / "cargo-build" / "ci-cargo-build.tar.gz").is_file()

    (tmp_path / "target" / "release" / "kvs").unlink()
    restored = runner.invoke(app, ["cache", "restore", "--root", str(tmp_path)])
    assert restored.exit_code == 0, restored.output
    assert "restored 1/1 scopes" in restored.output
    assert (tmp_path / "target" / "release" / "kvs").read_bytes() == b"bin"


def test_cache_disabled(tmp_path: Path) -> None:
    (tmp_path / "tagrel.toml").write_text("[cache]\nenabled = false\n", encoding="utf-8")
    result = runner.invoke(app, ["cache", "save", "--root", str(tmp_path)])
    assert result.exit_code == 1
