"""GitHub releases through the `gh` CLI.

Uses `gh api` rather than `gh release ...` so the asset name and content type
are sent exactly as declared. The hosting credential, when configured, is
passed to the child process as GH_TOKEN and nowhere else.
"""

from __future__ import annotations

import json
import re
import shutil
from pathlib import Path
from time import sleep
from urllib.parse import quote

from tagrel.core.result import Err, Ok, Result
from tagrel.core.structured import as_str_dict, get_bool, get_str
from tagrel.platform.process import ProcessError
from tagrel.platform.process import run as run_process
from tagrel.services.errors import StageError, StageErrorKind
from tagrel.services.model import AssetAttachment, BuildArtifact, ReleaseHandle
from tagrel.services.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
    GH_UPLOAD_TIMEOUT_SECONDS,
)

# gh resolves {owner}/{repo} from the checkout's remote
_CURRENT_REPO = "{owner}/{repo}"
_URL_TEMPLATE_RE = re.compile(r"\{[^}]*\}$")


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "http 404" in text or "not found" in text


def _is_already_exists(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return "already_exists" in text or "already exists" in text


def _hint(error: ProcessError) -> str | None:
    return error.stderr.strip() or error.stdout.strip() or None


def parse_release_payload(payload: str, *, preexisting: bool) -> ReleaseHandle | None:
    """Build a handle from a GitHub release JSON object; None if malformed."""
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError:
        return None

    data = as_str_dict(obj)
    if data is None:
        return None

    tag = get_str(data, "tag_name")
    upload_url = get_str(data, "upload_url")
    release_id = data.get("id")
    if tag is None or upload_url is None or not isinstance(release_id, int):
        return None

    assets: list[tuple[str, int]] = []
    raw_assets = data.get("assets")
    if isinstance(raw_assets, list):
        for item in raw_assets:
            a = as_str_dict(item)
            if a is None:
                continue
            name = get_str(a, "name")
            asset_id = a.get("id")
            if name is not None and isinstance(asset_id, int):
                assets.append((name, asset_id))

    return ReleaseHandle(
        tag=tag,
        release_id=release_id,
        upload_url=_URL_TEMPLATE_RE.sub("", upload_url),
        html_url=get_str(data, "html_url"),
        existing_assets=tuple(assets),
        preexisting=preexisting,
        draft=get_bool(data, "draft") is True,
    )


def asset_upload_url(handle: ReleaseHandle, name: str) -> str:
    return f"{handle.upload_url}?name={quote(name, safe='')}"


class GhHostingClient:
    """HostingClient backed by `gh api`."""

    def __init__(
        self,
        *,
        source_root: Path,
        repo: str | None = None,
        credential: str | None = None,
    ) -> None:
        self._root = source_root
        self._repo = repo or _CURRENT_REPO
        self._env = {"GH_TOKEN": credential} if credential else None

    def ensure_available(self) -> Result[None, StageError]:
        if shutil.which("gh") is None:
            return Err(
                StageError(
                    kind="gh_missing",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )
        return Ok(None)

    def ensure_auth(self) -> Result[None, StageError]:
        result = self._run(["gh", "auth", "status"])
        if isinstance(result, Err):
            return Err(
                StageError(
                    kind="gh_auth_required",
                    message="gh auth required",
                    hint="Set GH_TOKEN for the run, or run: gh auth login",
                )
            )
        return Ok(None)

    def _run(self, cmd: list[str], *, timeout: float = GH_TIMEOUT_SECONDS):
        return run_process(cmd, cwd=self._root, env=self._env, timeout=timeout)

    def _read(self, cmd: list[str]) -> Result[str, ProcessError]:
        attempts = max(1, GH_READ_RETRY_ATTEMPTS)
        result = self._run(cmd)
        for attempt in range(1, attempts):
            if isinstance(result, Ok) or not _is_transient_gh_error(result.error):
                break
            sleep(GH_READ_RETRY_DELAY_SECONDS * attempt)
            result = self._run(cmd)
        return result

    def find_release(self, tag: str) -> Result[ReleaseHandle | None, StageError]:
        """Look up an existing release by tag; Ok(None) when there is none."""
        endpoint = f"repos/{self._repo}/releases/tags/{quote(tag, safe='')}"
        result = self._read(["gh", "api", endpoint])
        if isinstance(result, Err):
            e = result.error
            if _is_not_found(e):
                return Ok(None)
            return Err(self._error("release_create_failed", f"failed to query release {tag}", e))

        handle = parse_release_payload(result.value, preexisting=True)
        if handle is None:
            return Err(
                StageError(
                    kind="release_create_failed",
                    message=f"unexpected release payload: {tag}",
                )
            )
        return Ok(handle)

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        draft: bool,
        prerelease: bool,
    ) -> Result[ReleaseHandle, StageError]:
        cmd = [
            "gh",
            "api",
            "--method",
            "POST",
            f"repos/{self._repo}/releases",
            "-f",
            f"tag_name={tag}",
            "-f",
            f"name={title}",
            "-F",
            f"draft={str(draft).lower()}",
            "-F",
            f"prerelease={str(prerelease).lower()}",
        ]
        # Writes are not retried: a retried create could surface as a conflict.
        result = self._run(cmd)
        if isinstance(result, Err):
            e = result.error
            if _is_already_exists(e):
                return Err(
                    StageError(
                        kind="release_exists",
                        message=f"release already exists: {tag}",
                        hint="Use release policy skip-if-exists or overwrite-assets to re-run.",
                    )
                )
            return Err(self._error("release_create_failed", f"failed to create release {tag}", e))

        handle = parse_release_payload(result.value, preexisting=False)
        if handle is None:
            return Err(
                StageError(
                    kind="release_create_failed",
                    message=f"release {tag} created but the response was not understood",
                    hint="Inspect the release on the hosting provider.",
                )
            )
        return Ok(handle)

    def delete_asset(self, handle: ReleaseHandle, asset_id: int) -> Result[None, StageError]:
        cmd = [
            "gh",
            "api",
            "--method",
            "DELETE",
            f"repos/{self._repo}/releases/assets/{asset_id}",
        ]
        result = self._run(cmd)
        if isinstance(result, Err):
            return Err(
                self._error(
                    "upload_failed",
                    f"failed to delete asset {asset_id} of {handle.tag}",
                    result.error,
                )
            )
        return Ok(None)

    def upload_asset(
        self,
        handle: ReleaseHandle,
        artifact: BuildArtifact,
        *,
        clobber: bool = False,
    ) -> Result[AssetAttachment, StageError]:
        existing = handle.asset_id(artifact.name)
        if existing is not None:
            if not clobber:
                return Err(
                    StageError(
                        kind="upload_failed",
                        message=f"asset already attached to {handle.tag}: {artifact.name}",
                    )
                )
            deleted = self.delete_asset(handle, existing)
            if isinstance(deleted, Err):
                return deleted

        cmd = [
            "gh",
            "api",
            "--method",
            "POST",
            "-H",
            f"Content-Type: {artifact.content_type}",
            asset_upload_url(handle, artifact.name),
            "--input",
            str(artifact.path),
        ]
        result = self._run(cmd, timeout=GH_UPLOAD_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                self._error(
                    "upload_failed",
                    f"failed to upload {artifact.name} to {handle.tag}",
                    result.error,
                )
            )

        return Ok(
            AssetAttachment(
                release_tag=handle.tag,
                name=artifact.name,
                content_type=artifact.content_type,
                size=artifact.size,
            )
        )

    @staticmethod
    def _error(kind: StageErrorKind, message: str, error: ProcessError) -> StageError:
        return StageError(
            kind=kind, message=message, hint=_hint(error), returncode=error.returncode
        )
