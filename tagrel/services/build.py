"""Build stage: run the release build and collect its artifacts.

A build failure is deterministic for a given source tree, so it is never
retried.
"""

from __future__ import annotations

from pathlib import Path

from tagrel.core.config import ArtifactSpec, BuildConfig
from tagrel.core.result import Err, Ok, Result
from tagrel.output.console import ConsoleProtocol, Style, format_command
from tagrel.platform.process import run_streaming
from tagrel.services.errors import StageError
from tagrel.services.model import BuildArtifact, BuildOutcome


def render_command(command: tuple[str, ...], *, profile: str) -> list[str]:
    return [arg.replace("{profile}", profile) for arg in command]


class BuildRunner:
    """Invoke the external build toolchain with a fixed profile."""

    def __init__(self, *, config: BuildConfig, source_root: Path, console: ConsoleProtocol) -> None:
        self._config = config
        self._root = source_root
        self._console = console

    def run(self, profile: str | None = None) -> Result[BuildOutcome, StageError]:
        profile = profile or self._config.profile
        cmd = render_command(self._config.command, profile=profile)
        self._console.print(format_command(cmd), Style.DIM)

        result = run_streaming(cmd, cwd=self._root, timeout=self._config.timeout_seconds)
        if isinstance(result, Err):
            e = result.error
            return Err(
                StageError(
                    kind="build_failed",
                    message=f"build failed (exit {e.returncode})",
                    hint=e.stderr.strip() or None,
                    returncode=e.returncode,
                )
            )

        artifacts: list[BuildArtifact] = []
        for spec in self._config.artifacts:
            artifact = self._collect(spec)
            if isinstance(artifact, Err):
                return artifact
            artifacts.append(artifact.value)

        return Ok(BuildOutcome(artifacts=tuple(artifacts), exit_code=0))

    def _collect(self, spec: ArtifactSpec) -> Result[BuildArtifact, StageError]:
        path = self._root / spec.path
        if not path.is_file():
            return Err(
                StageError(
                    kind="artifact_missing",
                    message=f"build artifact not found: {spec.path}",
                    hint="Check [build] artifacts in tagrel.toml against the build output.",
                )
            )
        if path.stat().st_size == 0:
            return Err(
                StageError(kind="artifact_missing", message=f"build artifact is empty: {spec.path}")
            )
        return Ok(BuildArtifact(path=path, name=spec.name, content_type=spec.content_type))
