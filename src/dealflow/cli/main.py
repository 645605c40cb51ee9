"""Dealflow CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from dealflow.cli.context import ask_cmd, context_cmd
from dealflow.cli.init import init_cmd
from dealflow.cli.news import news_cmd
from dealflow.cli.notes import add_note_cmd
from dealflow.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("dealflow")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dealflow {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="dealflow",
    help=(
        "Dealflow — cited answers about your deal pipeline.\n\n"
        "  dealflow context  Show the sources and citation keys for a question.\n"
        "  dealflow ask      Answer a question with [S#] citations."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level (DEBUG, INFO, ...)."),
    ] = None,
) -> None:
    """Dealflow — cited answers about your deal pipeline."""
    ctx.obj = {"log_level": log_level}


app.command("init")(init_cmd)
app.command("add-note")(add_note_cmd)
app.command("context")(context_cmd)
app.command("ask")(ask_cmd)
app.command("news")(news_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Dealflow version."""
    typer.echo(f"dealflow {_installed_version()}")


if __name__ == "__main__":
    app()
