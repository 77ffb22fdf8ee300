"""Cache commands - run one cache hook on its own (e.g. around a manual build)."""

from __future__ import annotations

from pathlib import Path

import typer

from tagrel.cli.commands._helpers import CONFIG_OPTION, ROOT_OPTION, exit_with
from tagrel.cli.context import CLIContext, build_context
from tagrel.core.errors import ExitCode
from tagrel.platform.detection import environment_class
from tagrel.services.cache import CacheHooks, FileCacheStore, resolve_scopes

cache_app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Restore or save the toolchain caches.",
)


def _hooks(ctx: CLIContext) -> CacheHooks:
    cache = ctx.config.cache
    if not cache.enabled:
        exit_with("cache is disabled in tagrel.toml", code=ExitCode.INPUT_REJECTED)
    root = Path(cache.dir).expanduser()
    if not root.is_absolute():
        root = ctx.source_root / root
    return CacheHooks(
        store=FileCacheStore(root),
        scopes=resolve_scopes(cache.scopes, source_root=ctx.source_root),
        environment_class=environment_class(cache.environment_class),
        console=ctx.console,
    )


@cache_app.command("restore")
def restore(
    root: Path | None = ROOT_OPTION,
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Restore every cache scope (misses are not errors)."""
    ctx = build_context(root=root, config_path=config_path)
    hits = _hooks(ctx).restore_all()
    ctx.console.success(f"restored {sum(hits.values())}/{len(hits)} scopes")


@cache_app.command("save")
def save(
    root: Path | None = ROOT_OPTION,
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Save every cache scope that exists on disk."""
    ctx = build_context(root=root, config_path=config_path)
    saved = _hooks(ctx).save_all()
    ctx.console.success(f"saved {sum(saved.values())}/{len(saved)} scopes")
