"""Plan command - show what a run would do for a tag, without doing it."""

from __future__ import annotations

from pathlib import Path

import typer

from tagrel.cli.commands._helpers import CONFIG_OPTION, ROOT_OPTION, TAG_OPTION, resolve_trigger
from tagrel.cli.context import build_context
from tagrel.core.errors import ExitCode
from tagrel.core.result import Err
from tagrel.output.console import Style
from tagrel.services.orchestrator import create_pipeline


def plan(
    tag: str | None = TAG_OPTION,
    root: Path | None = ROOT_OPTION,
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Print the release identifier, title, docs path and cache keys for a tag."""
    ctx = build_context(root=root, config_path=config_path)
    ref = resolve_trigger(tag)

    pipeline = create_pipeline(config=ctx.config, source_root=ctx.source_root, console=ctx.console)
    result = pipeline.plan(ref)
    if isinstance(result, Err):
        ctx.console.error(result.error.message)
        if result.error.hint:
            ctx.console.print(f"hint: {result.error.hint}", Style.DIM)
        raise typer.Exit(code=int(ExitCode.INPUT_REJECTED))

    p = result.value
    console = ctx.console
    console.print(f"release:  {p.tag}")
    console.print(f"title:    {p.title}")
    console.print(f"policy:   {p.policy}")
    console.print(f"assets:   {', '.join(p.asset_names) or '(none)'}")
    if p.docs_enabled:
        console.print(f"docs:     {ctx.config.docs.branch}:{p.doc_subpath}")
    else:
        console.print("docs:     (disabled)", Style.DIM)
    for key in p.cache_keys:
        console.print(f"cache:    {key}", Style.DIM)
