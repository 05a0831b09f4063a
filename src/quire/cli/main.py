"""quire CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from quire.cli.chat import chat_cmd
from quire.cli.notebook import notebook_app
from quire.cli.search import search_cmd
from quire.cli.source import source_app
from quire.cli.transform import notes_cmd, transform_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("quire")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quire {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="quire",
    help=(
        "quire: notebook RAG engine.\n\n"
        "  quire source add    Ingest documents, web pages or text into a notebook.\n"
        "  quire chat          Ask questions answered from the notebook's sources.\n"
        "  quire transform     Generate summaries, FAQs, slide decks, infographics..."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """quire: notebook RAG engine."""


app.add_typer(notebook_app, name="notebook")
app.add_typer(source_app, name="source")
app.command("search")(search_cmd)
app.command("chat")(chat_cmd)
app.command("transform")(transform_cmd)
app.command("notes")(notes_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed quire version."""
    typer.echo(f"quire {_installed_version()}")


if __name__ == "__main__":
    app()
