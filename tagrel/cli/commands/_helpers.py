"""Shared helpers for CLI commands."""

from __future__ import annotations

import os
from pathlib import Path
from typing import NoReturn

import typer

from tagrel.core.errors import ExitCode

ROOT_OPTION = typer.Option(
    None,
    "--root",
    help="Source checkout to release (default: current directory)",
    show_default=False,
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Path to tagrel.toml (default: <root>/tagrel.toml)",
    show_default=False,
)
TAG_OPTION = typer.Option(
    None,
    "--tag",
    help="Pushed tag, e.g. v1.2.3 or refs/tags/v1.2.3 (default: $GITHUB_REF)",
    show_default=False,
)


def exit_with(message: str, *, code: ExitCode) -> NoReturn:
    typer.echo(f"error: {message}", err=True)
    raise typer.Exit(code=int(code))


def resolve_trigger(tag: str | None) -> str:
    """The trigger ref: --tag, else the CI-provided GITHUB_REF."""
    if tag is not None:
        return tag
    ref = os.environ.get("GITHUB_REF", "").strip()
    if not ref:
        exit_with("no tag given: pass --tag or set GITHUB_REF", code=ExitCode.INPUT_REJECTED)
    return ref


def resolve_dir(path: Path | None, *, root: Path) -> Path | None:
    if path is None:
        return None
    p = path.expanduser()
    return p if p.is_absolute() else root / p
