"""Subprocess execution with Result-based error handling.

All external collaborators (build toolchain, doc generator, gh, git) are run
through this module. A timeout is reported as a failed process with
returncode -1 so callers treat it like any other failure of their stage.

Usage:
    result = run(["gh", "release", "view", "v1.2.3"], cwd=root)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from tagrel.core.result import Err, Ok, Result

__all__ = ["ProcessError", "child_env", "run", "run_streaming"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 if the process could not run or timed out.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def timed_out(self) -> bool:
        return self.returncode == -1 and "timed out" in self.stderr

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def child_env(extra: Mapping[str, str] | None) -> dict[str, str] | None:
    """Overlay `extra` on the current environment for a child process.

    Returns None (inherit unchanged) when there is nothing to add, so secrets
    are only ever placed in the child's environment, never in ours.
    """
    if not extra:
        return None
    env = dict(os.environ)
    env.update(extra)
    return env


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and capture its output.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Extra environment variables for the child only.
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=child_env(env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(proc.stdout)


def run_streaming(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[None, ProcessError]:
    """Execute a command with output streaming to the terminal.

    Used for long toolchain invocations (build, doc generation) whose output
    belongs in the CI log. Only the exit status is reported back.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=child_env(env),
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(command=tuple(cmd), returncode=proc.returncode, stdout="", stderr="")
        )

    return Ok(None)
