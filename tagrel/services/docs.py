"""Documentation stage: generate the docs tree and publish it per version.

Publishing is additive: a deploy replaces exactly `<site>/<subpath>/` and
leaves every other version's directory alone.
"""

from __future__ import annotations

import tempfile
from pathlib import Path, PurePosixPath
from typing import Protocol

from tagrel.core.config import DocsConfig
from tagrel.core.result import Err, Ok, Result
from tagrel.git.repository import GitError, Repository, basic_auth_header
from tagrel.output.console import ConsoleProtocol, Style, format_command
from tagrel.platform.files import is_within, replace_tree
from tagrel.platform.process import run_streaming
from tagrel.services.errors import StageError
from tagrel.services.model import DocumentationBundle
from tagrel.services.version import VersionRef

COMMIT_AUTHOR_NAME = "tagrel"
COMMIT_AUTHOR_EMAIL = "tagrel@users.noreply.github.com"


class DeployTarget(Protocol):
    def deploy(self, bundle: DocumentationBundle) -> Result[str, StageError]:
        """Publish the bundle under its subpath; returns where it landed."""
        ...


def check_subpath(subpath: str) -> Result[PurePosixPath, StageError]:
    # One segment per version; a nested sub-path could sit inside another version's tree.
    rel = PurePosixPath(subpath)
    if not subpath or rel.is_absolute() or len(rel.parts) != 1 or rel.parts[0] in {".", ".."}:
        return Err(
            StageError(kind="docs_deploy_failed", message=f"invalid docs destination: {subpath!r}")
        )
    return Ok(rel)


def replace_subtree(src: Path, site_root: Path, subpath: str) -> Result[int, StageError]:
    """Copy src to site_root/subpath, replacing only that sub-path."""
    rel = check_subpath(subpath)
    if isinstance(rel, Err):
        return rel

    dest = site_root.joinpath(*rel.value.parts)
    if not is_within(site_root, dest) or dest.resolve() == site_root.resolve():
        return Err(
            StageError(
                kind="docs_deploy_failed",
                message=f"docs destination escapes site: {subpath}",
            )
        )

    try:
        count = replace_tree(src, dest)
    except OSError as e:
        return Err(StageError(kind="docs_deploy_failed", message=f"failed to copy docs: {e}"))
    return Ok(count)


class DocGenerator:
    """Run the external doc generator and locate its output tree."""

    def __init__(self, *, config: DocsConfig, source_root: Path, console: ConsoleProtocol) -> None:
        self._config = config
        self._root = source_root
        self._console = console

    def generate(self, version: VersionRef) -> Result[DocumentationBundle, StageError]:
        cmd = list(self._config.command)
        self._console.print(format_command(cmd), Style.DIM)
        result = run_streaming(cmd, cwd=self._root, timeout=self._config.timeout_seconds)
        if isinstance(result, Err):
            e = result.error
            return Err(
                StageError(
                    kind="docs_generate_failed",
                    message=f"doc generation failed (exit {e.returncode})",
                    hint=e.stderr.strip() or None,
                    returncode=e.returncode,
                )
            )

        out = self._root / self._config.output_dir
        if not out.is_dir() or not any(out.iterdir()):
            return Err(
                StageError(
                    kind="docs_output_missing",
                    message=f"doc output not found or empty: {self._config.output_dir}",
                    hint="Check [docs] output_dir in tagrel.toml.",
                )
            )
        return Ok(DocumentationBundle(root=out, subpath=version.doc_subpath))


class DirectoryTarget:
    """Publish into a local site directory."""

    def __init__(self, site_root: Path) -> None:
        self.site_root = site_root

    def deploy(self, bundle: DocumentationBundle) -> Result[str, StageError]:
        count = replace_subtree(bundle.root, self.site_root, bundle.subpath)
        if isinstance(count, Err):
            return count
        return Ok(f"{self.site_root / bundle.subpath} ({count.value} files)")


def _deploy_error(step: str, e: GitError) -> StageError:
    return StageError(
        kind="docs_deploy_failed",
        message=f"docs deploy failed ({step}: git {e.command})",
        hint=e.message,
        returncode=e.returncode,
    )


class GitBranchTarget:
    """Publish onto a long-lived branch (e.g. gh-pages) of the source remote.

    Works in a throw-away clone so the checkout that was built is untouched.
    A re-run that produces identical docs pushes nothing.
    """

    def __init__(
        self,
        *,
        config: DocsConfig,
        source_root: Path,
        console: ConsoleProtocol,
        credential: str | None = None,
    ) -> None:
        self._config = config
        self._root = source_root
        self._console = console
        self._auth = basic_auth_header(credential) if credential else None

    def deploy(self, bundle: DocumentationBundle) -> Result[str, StageError]:
        branch = self._config.branch
        url = Repository(self._root).remote_url(self._config.remote)
        if url is None:
            return Err(
                StageError(
                    kind="docs_deploy_failed",
                    message=f"git remote not found: {self._config.remote}",
                    hint="Set [docs] remote in tagrel.toml.",
                )
            )

        with tempfile.TemporaryDirectory(prefix="tagrel-pages-") as tmp:
            repo = Repository(Path(tmp) / "site", auth_header=self._auth)
            self._console.print(f"git fetch {self._config.remote} {branch}", Style.DIM)
            prepared = self._prepare(repo, url, branch)
            if isinstance(prepared, Err):
                return prepared

            copied = replace_subtree(bundle.root, repo.path, bundle.subpath)
            if isinstance(copied, Err):
                return copied

            staged = self._stage(repo, bundle.subpath)
            if isinstance(staged, Err):
                return staged

            changed = repo.has_staged_changes()
            if isinstance(changed, Err):
                return Err(_deploy_error("diff", changed.error))
            if not changed.value:
                self._console.print(f"{branch}/{bundle.subpath} already up to date", Style.DIM)
                return Ok(f"{branch}:{bundle.subpath} (unchanged)")

            committed = repo.commit(
                f"docs: publish {bundle.subpath}",
                author_name=COMMIT_AUTHOR_NAME,
                author_email=COMMIT_AUTHOR_EMAIL,
            )
            if isinstance(committed, Err):
                return Err(_deploy_error("commit", committed.error))

            self._console.print(f"git push {self._config.remote} {branch}", Style.DIM)
            pushed = repo.push("origin", branch)
            if isinstance(pushed, Err):
                return Err(_deploy_error("push", pushed.error))

        return Ok(f"{branch}:{bundle.subpath} ({copied.value} files)")

    def _prepare(self, repo: Repository, url: str, branch: str) -> Result[None, StageError]:
        for step in (repo.init, lambda: repo.add_remote("origin", url)):
            r = step()
            if isinstance(r, Err):
                return Err(_deploy_error("setup", r.error))

        fetched = repo.fetch_branch("origin", branch)
        if isinstance(fetched, Err):
            return Err(_deploy_error("fetch", fetched.error))

        checkout = repo.checkout_fetched(branch) if fetched.value else repo.checkout_orphan(branch)
        if isinstance(checkout, Err):
            return Err(_deploy_error("checkout", checkout.error))
        return Ok(None)

    def _stage(self, repo: Repository, subpath: str) -> Result[None, StageError]:
        paths = [subpath]
        nojekyll = repo.path / ".nojekyll"
        if not nojekyll.exists():
            # GitHub Pages would otherwise drop rustdoc's underscore-prefixed files.
            nojekyll.touch()
            paths.append(".nojekyll")
        for rel in paths:
            r = repo.stage_path(rel)
            if isinstance(r, Err):
                return Err(_deploy_error("add", r.error))
        return Ok(None)


class DocsPublisher:
    """Generate then deploy; the two steps report separately."""

    def __init__(self, *, generator: DocGenerator, target: DeployTarget) -> None:
        self._generator = generator
        self._target = target

    def publish(self, version: VersionRef) -> Result[str, StageError]:
        bundle = self._generator.generate(version)
        if isinstance(bundle, Err):
            return bundle
        return self._target.deploy(bundle.value)
