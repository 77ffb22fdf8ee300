from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

import typer

from tagrel.core.config import CONFIG_FILE_NAME, PipelineConfig, load_config_or_default
from tagrel.core.errors import ExitCode
from tagrel.core.result import Err
from tagrel.output.console import ConsoleProtocol, RichConsole

# Checked in order; the first non-empty value wins.
HOSTING_CREDENTIAL_VARS = ("GH_TOKEN", "GITHUB_TOKEN")
DEPLOY_CREDENTIAL_VARS = ("TAGREL_DEPLOY_TOKEN", "GH_TOKEN", "GITHUB_TOKEN")


@dataclass(frozen=True, slots=True)
class CLIContext:
    source_root: Path
    config: PipelineConfig
    console: ConsoleProtocol


def _first_env(names: tuple[str, ...]) -> str | None:
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return None


def build_context(*, root: Path | None, config_path: Path | None) -> CLIContext:
    """Resolve the checkout, load `tagrel.toml` and attach credentials.

    This is the only place that reads credentials from the environment.
    """
    try:
        source_root = (root or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --root: {e}", err=True)
        raise typer.Exit(code=int(ExitCode.INPUT_REJECTED))

    if not source_root.is_dir():
        typer.echo(f"error: source root is not a directory: {source_root}", err=True)
        raise typer.Exit(code=int(ExitCode.INPUT_REJECTED))

    path = config_path or source_root / CONFIG_FILE_NAME
    if config_path is not None and not config_path.exists():
        typer.echo(f"error: config file not found: {config_path}", err=True)
        raise typer.Exit(code=int(ExitCode.INPUT_REJECTED))

    loaded = load_config_or_default(path)
    if isinstance(loaded, Err):
        typer.echo(f"error: {loaded.error.message}", err=True)
        raise typer.Exit(code=int(ExitCode.INPUT_REJECTED))

    config = replace(
        loaded.value,
        hosting_credential=_first_env(HOSTING_CREDENTIAL_VARS),
        deploy_credential=_first_env(DEPLOY_CREDENTIAL_VARS),
    )
    return CLIContext(source_root=source_root, config=config, console=RichConsole())
