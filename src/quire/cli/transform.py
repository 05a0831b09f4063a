"""quire transform / quire notes: generate and list notebook notes.

Usage:
  quire transform <notebook-id> summary --length short
  quire transform <notebook-id> ppt --source <source-id> --source <source-id>
  quire notes <notebook-id>
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown
from rich.table import Table

from quire.cli.common import console, service_session
from quire.db.models import TransformationRequest

DbOption = Annotated[Path | None, typer.Option("--db", help="Path to the quire store.")]


def transform_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    kind: Annotated[
        str,
        typer.Argument(
            help="summary, faq, study_guide, outline, podcast, timeline, glossary, quiz, "
            "infograph, ppt, mindmap, insight, data_table or data_chart."
        ),
    ],
    length: Annotated[str, typer.Option("--length", help="Target length hint.")] = "medium",
    fmt: Annotated[str, typer.Option("--format", help="Target output format.")] = "markdown",
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="Extra instructions.")] = "",
    source_ids: Annotated[
        list[str] | None,
        typer.Option("--source", help="Restrict to this source id (repeatable)."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Generate a note of type KIND from the notebook's sources."""
    request = TransformationRequest(
        type=kind, length=length, format=fmt, prompt=prompt, source_ids=list(source_ids or [])
    )
    with service_session(db) as service:
        note = service.transform(notebook_id, request)

    console.print(f"[green]✓[/] Created note [bold]{note.title}[/] ({note.id})")
    if note.content:
        console.print(Markdown(note.content))
    if image := note.metadata.get("image_url"):
        console.print(f"  Image: {image}")
    for path in note.metadata.get("slides", []):
        console.print(f"  Slide: {path}")
    if error := note.metadata.get("image_error"):
        console.print(f"[yellow]⚠[/] Images not generated: {error}")
    if failed := note.metadata.get("slides_failed"):
        console.print(f"[yellow]⚠[/] Slides without image: {', '.join(map(str, failed))}")


def notes_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    db: DbOption = None,
) -> None:
    """List a notebook's notes, newest first."""
    with service_session(db) as service:
        notes = service.list_notes(notebook_id)

    if not notes:
        console.print("[dim]No notes yet.[/]  Run:  quire transform <notebook-id> summary")
        return

    table = Table(title="Notes")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="bold")
    table.add_column("Type")
    table.add_column("Sources", justify="right")
    table.add_column("Created")
    for note in notes:
        table.add_row(
            note.id, note.title, note.type, str(len(note.source_ids)), note.created_at or ""
        )
    console.print(table)
