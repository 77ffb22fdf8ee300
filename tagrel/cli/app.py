from __future__ import annotations

import typer

from tagrel import __version__
from tagrel.cli.commands.cache_cmd import cache_app
from tagrel.cli.commands.plan_cmd import plan
from tagrel.cli.commands.run_cmd import run


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(run)
app.command()(plan)

# Sub-apps
app.add_typer(cache_app, name="cache")


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)


def main() -> None:
    app()
