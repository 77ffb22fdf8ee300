"""Run command - the full release pipeline for one tag."""

from __future__ import annotations

from dataclasses import replace
from enum import StrEnum
from pathlib import Path

import typer

from tagrel.cli.commands._helpers import (
    CONFIG_OPTION,
    ROOT_OPTION,
    TAG_OPTION,
    exit_with,
    resolve_dir,
    resolve_trigger,
)
from tagrel.cli.context import build_context
from tagrel.core.errors import ExitCode
from tagrel.core.result import Err
from tagrel.output.console import Style
from tagrel.output.report import outcome_exit_code, print_outcome
from tagrel.services.gh import GhHostingClient
from tagrel.services.orchestrator import create_pipeline
from tagrel.services.outcome import InputRejected


class Policy(StrEnum):
    fail = "fail"
    skip_if_exists = "skip-if-exists"
    overwrite_assets = "overwrite-assets"


def run(
    tag: str | None = TAG_OPTION,
    root: Path | None = ROOT_OPTION,
    config_path: Path | None = CONFIG_OPTION,
    policy: Policy | None = typer.Option(
        None,
        "--policy",
        help="What to do when the tag already has a release (default: from config)",
        show_default=False,
    ),
    no_isolate_docs: bool = typer.Option(
        False,
        "--no-isolate-docs",
        help="Fail the run (exit 5) when docs fail after a public release",
    ),
    skip_docs: bool = typer.Option(False, "--skip-docs", help="Do not generate or deploy docs"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Skip cache restore and save"),
    site_dir: Path | None = typer.Option(
        None,
        "--site-dir",
        help="Publish docs into this directory instead of the docs branch",
        show_default=False,
    ),
) -> None:
    """Build, release and publish docs for a pushed tag."""
    ctx = build_context(root=root, config_path=config_path)
    ref = resolve_trigger(tag)

    config = ctx.config
    if skip_docs:
        config = replace(config, docs=replace(config.docs, enabled=False))
    if no_isolate_docs:
        config = replace(config, docs=replace(config.docs, isolate=False))
    if no_cache:
        config = replace(config, cache=replace(config.cache, enabled=False))

    client = GhHostingClient(
        source_root=ctx.source_root,
        repo=config.release.repo,
        credential=config.hosting_credential,
    )
    pipeline = create_pipeline(
        config=config,
        source_root=ctx.source_root,
        console=ctx.console,
        policy=policy.value if policy is not None else None,
        site_dir=resolve_dir(site_dir, root=ctx.source_root),
        client=client,
    )

    # Reject a bad trigger before touching the environment.
    plan = pipeline.plan(ref)
    if isinstance(plan, Err):
        rejected = InputRejected(ref=ref, error=plan.error)
        print_outcome(rejected, ctx.console)
        raise typer.Exit(code=outcome_exit_code(rejected))

    for check in (client.ensure_available, client.ensure_auth):
        ok = check()
        if isinstance(ok, Err):
            ctx.console.error(ok.error.message)
            if ok.error.hint:
                ctx.console.print(f"hint: {ok.error.hint}", Style.DIM)
            exit_with("release host unavailable", code=ExitCode.ENV_ERROR)

    ctx.console.print(f"tag {plan.value.tag} -> docs/{plan.value.doc_subpath}", Style.DIM)
    outcome = pipeline.run(ref)
    print_outcome(outcome, ctx.console)

    code = outcome_exit_code(outcome)
    if code != int(ExitCode.OK):
        raise typer.Exit(code=code)
