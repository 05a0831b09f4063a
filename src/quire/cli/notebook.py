"""quire notebook: create, list, share and delete notebooks.

Usage:
  quire notebook create "Thesis reading" --description "Chapter 2 sources"
  quire notebook list
  quire notebook share <notebook-id>
  quire notebook delete <notebook-id> --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from quire.cli.common import console, service_session

notebook_app = typer.Typer(help="Create, list, share and delete notebooks.", no_args_is_help=True)

DbOption = Annotated[Path | None, typer.Option("--db", help="Path to the quire store.")]


@notebook_app.command("create")
def create_cmd(
    name: Annotated[str, typer.Argument(help="Notebook name.")],
    description: Annotated[str, typer.Option("--description", "-d", help="Description.")] = "",
    db: DbOption = None,
) -> None:
    """Create a notebook and print its id."""
    with service_session(db) as service:
        notebook = service.create_notebook(name, description)
    console.print(f"[green]✓[/] Created notebook [bold]{notebook.name}[/] ({notebook.id})")


@notebook_app.command("list")
def list_cmd(db: DbOption = None) -> None:
    """List notebooks, newest first."""
    with service_session(db) as service:
        notebooks = service.list_notebooks()
        counts = {nb.id: len(service.list_sources(nb.id)) for nb in notebooks}

    if not notebooks:
        console.print("[dim]No notebooks yet.[/]  Run:  quire notebook create <name>")
        return

    table = Table(title="Notebooks", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Sources", justify="right")
    table.add_column("Public")
    table.add_column("Created")
    for nb in notebooks:
        table.add_row(
            nb.id,
            nb.name,
            str(counts[nb.id]),
            "yes" if nb.is_public else "no",
            nb.created_at or "",
        )
    console.print(table)


@notebook_app.command("share")
def share_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    off: Annotated[bool, typer.Option("--off", help="Stop sharing the notebook.")] = False,
    db: DbOption = None,
) -> None:
    """Toggle public sharing and print the share token."""
    with service_session(db) as service:
        token = service.set_public(notebook_id, not off)
    if token:
        console.print(f"[green]✓[/] Notebook is public. Share token: [bold]{token}[/]")
    else:
        console.print("[green]✓[/] Notebook is private.")


@notebook_app.command("delete")
def delete_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Delete a notebook with all of its sources, notes and chats."""
    with service_session(db) as service:
        notebook = service.get_notebook(notebook_id)
        if not yes and not typer.confirm(f"Delete notebook '{notebook.name}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        service.delete_notebook(notebook_id)
    console.print(f"[green]✓[/] Deleted notebook: {notebook.name}")
