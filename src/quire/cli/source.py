"""quire source: add, list and remove notebook sources.

Usage:
  quire source add <notebook-id> --file paper.pdf
  quire source add <notebook-id> --url https://example.com/article
  quire source add <notebook-id> --text "Meeting notes ..." --name notes
  quire source list <notebook-id>
  quire source remove <notebook-id> <source-id>
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from quire.cli.common import console, service_session
from quire.cli.errors import err_ssrf_blocked
from quire.ingest.extract import SsrfError

source_app = typer.Typer(help="Add, list and remove notebook sources.", no_args_is_help=True)

DbOption = Annotated[Path | None, typer.Option("--db", help="Path to the quire store.")]


@source_app.command("add")
def add_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    file: Annotated[
        Path | None, typer.Option("--file", "-f", help="Document to add (.pdf, .md, .txt, ...).")
    ] = None,
    url: Annotated[str | None, typer.Option("--url", "-u", help="Web page to add.")] = None,
    text: Annotated[str | None, typer.Option("--text", "-t", help="Raw text to add.")] = None,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Source name.")] = None,
    db: DbOption = None,
) -> None:
    """Add one source (exactly one of --file, --url, --text) and index it."""
    given = [opt for opt in (file, url, text) if opt is not None]
    if len(given) != 1:
        console.print("[red]Error:[/] Give exactly one of --file, --url or --text.")
        raise typer.Exit(1)

    with service_session(db) as service:
        if file is not None:
            source = service.add_file_source(notebook_id, file)
        elif url is not None:
            try:
                source = service.add_source(notebook_id, name or url, type="url", url=url)
            except SsrfError:
                console.print(err_ssrf_blocked(url))
                raise typer.Exit(1)
            except RuntimeError as exc:
                console.print(f"[red]Error:[/] {exc}")
                raise typer.Exit(1)
        else:
            source = service.add_source(notebook_id, name or "text", type="text", content=text or "")

    console.print(
        f"[green]✓[/] Added [bold]{source.name}[/] ({source.id}): {source.chunk_count} chunks"
    )


@source_app.command("list")
def list_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    db: DbOption = None,
) -> None:
    """List a notebook's sources."""
    with service_session(db) as service:
        sources = service.list_sources(notebook_id)

    if not sources:
        console.print("[dim]No sources yet.[/]")
        return

    table = Table(title="Sources")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Chunks", justify="right")
    for src in sources:
        table.add_row(src.id, src.name, src.type, str(src.chunk_count))
    console.print(table)


@source_app.command("remove")
def remove_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    source_id: Annotated[str, typer.Argument(help="Source id.")],
    db: DbOption = None,
) -> None:
    """Remove a source and its indexed chunks."""
    with service_session(db) as service:
        service.delete_source(notebook_id, source_id)
    console.print(f"[green]✓[/] Removed source {source_id}")
    console.print(
        "[yellow]⚠[/] Existing notes may still reference this source.\n"
        "  Consider regenerating them:  quire transform <notebook-id> <type>"
    )
