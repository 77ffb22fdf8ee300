"""Git repository abstraction.

Only the operations the docs publishing branch needs: prepare a shallow work
tree of one branch, stage one sub-path, commit and push. All operations
return Result types.

Usage:
    repo = Repository(workdir, auth_header=header)
    match repo.fetch_branch("origin", "gh-pages"):
        case Ok(True):
            repo.checkout_fetched("gh-pages")
        case Ok(False):
            repo.checkout_orphan("gh-pages")
        case Err(e):
            print(f"fetch failed: {e.message}")
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path

from tagrel.core.result import Err, Ok, Result
from tagrel.platform.process import ProcessError
from tagrel.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "Repository",
    "basic_auth_header",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def basic_auth_header(token: str) -> str:
    """HTTP header value carrying a token, as used for GitHub https remotes."""
    raw = base64.b64encode(f"x-access-token:{token}".encode()).decode("ascii")
    return f"AUTHORIZATION: basic {raw}"


def _git_error(command: str, e: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=e.stderr.strip() or e.stdout.strip() or fallback,
        returncode=e.returncode,
    )


class Repository:
    """Git repository at a path.

    Attributes:
        path: Path to the work tree
    """

    def __init__(self, path: Path, *, auth_header: str | None = None) -> None:
        self.path = path
        self._auth_header = auth_header

    def exists(self) -> bool:
        return (self.path / ".git").exists()

    def _run(self, args: list[str], *, network: bool = False) -> Result[str, ProcessError]:
        cmd = ["git"]
        if network and self._auth_header:
            cmd += ["-c", f"http.extraheader={self._auth_header}"]
        cmd += args
        timeout = _GIT_NETWORK_TIMEOUT_SECONDS if network else _GIT_TIMEOUT_SECONDS
        return run_process(cmd, cwd=self.path, timeout=timeout)

    def init(self) -> Result[None, GitError]:
        self.path.mkdir(parents=True, exist_ok=True)
        result = self._run(["init", "--quiet"])
        if isinstance(result, Err):
            return Err(_git_error("init", result.error, "git init failed"))
        return Ok(None)

    def remote_url(self, name: str) -> str | None:
        """URL of a remote, or None if it is not configured."""
        result = self._run(["remote", "get-url", name])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def add_remote(self, name: str, url: str) -> Result[None, GitError]:
        result = self._run(["remote", "add", name, url])
        if isinstance(result, Err):
            return Err(_git_error("remote add", result.error, "git remote add failed"))
        return Ok(None)

    def fetch_branch(self, remote: str, branch: str) -> Result[bool, GitError]:
        """Shallow-fetch one branch.

        Returns:
            Ok(True) if fetched, Ok(False) if the remote has no such branch.
        """
        exists = self._run(["ls-remote", "--exit-code", "--heads", remote, branch], network=True)
        if isinstance(exists, Err):
            # --exit-code: 2 means the ref does not exist
            if exists.error.returncode == 2:
                return Ok(False)
            return Err(_git_error("ls-remote", exists.error, "git ls-remote failed"))

        result = self._run(["fetch", "--quiet", "--depth", "1", remote, branch], network=True)
        if isinstance(result, Err):
            return Err(_git_error("fetch", result.error, "git fetch failed"))
        return Ok(True)

    def checkout_fetched(self, branch: str) -> Result[None, GitError]:
        result = self._run(["checkout", "--quiet", "-B", branch, "FETCH_HEAD"])
        if isinstance(result, Err):
            return Err(_git_error("checkout", result.error, "git checkout failed"))
        return Ok(None)

    def checkout_orphan(self, branch: str) -> Result[None, GitError]:
        result = self._run(["checkout", "--quiet", "--orphan", branch])
        if isinstance(result, Err):
            return Err(_git_error("checkout --orphan", result.error, "git checkout failed"))
        return Ok(None)

    def stage_path(self, rel: str) -> Result[None, GitError]:
        """Stage additions, changes and deletions below one path only."""
        result = self._run(["add", "--all", "--", rel])
        if isinstance(result, Err):
            return Err(_git_error("add", result.error, "git add failed"))
        return Ok(None)

    def has_staged_changes(self) -> Result[bool, GitError]:
        result = self._run(["diff", "--cached", "--quiet"])
        match result:
            case Ok(_):
                return Ok(False)
            case Err(e) if e.returncode == 1:
                return Ok(True)
            case Err(e):
                return Err(_git_error("diff --cached", e, "git diff failed"))

    def commit(
        self, message: str, *, author_name: str, author_email: str
    ) -> Result[None, GitError]:
        result = self._run(
            [
                "-c",
                f"user.name={author_name}",
                "-c",
                f"user.email={author_email}",
                "commit",
                "--quiet",
                "-m",
                message,
            ]
        )
        if isinstance(result, Err):
            return Err(_git_error("commit", result.error, "git commit failed"))
        return Ok(None)

    def push(self, remote: str, branch: str) -> Result[None, GitError]:
        result = self._run(["push", "--quiet", remote, f"HEAD:refs/heads/{branch}"], network=True)
        if isinstance(result, Err):
            return Err(_git_error("push", result.error, "git push failed"))
        return Ok(None)
