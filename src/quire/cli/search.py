"""quire search: semantic search over one notebook's sources."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from quire.cli.common import console, service_session


def search_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    query: Annotated[str, typer.Argument(help="Search query.")],
    k: Annotated[int, typer.Option("--top-k", "-k", help="Number of results.")] = 5,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the quire store.")] = None,
) -> None:
    """Show the chunks closest to QUERY."""
    with service_session(db) as service:
        results = service.search(notebook_id, query, k)

    if not results:
        console.print("[dim]No matching chunks.[/]")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Source", style="bold")
    table.add_column("Text")
    for i, result in enumerate(results, start=1):
        snippet = result.text if len(result.text) <= 200 else result.text[:200] + "…"
        table.add_row(str(i), f"{result.score:.3f}", result.source_name, snippet)
    console.print(table)
