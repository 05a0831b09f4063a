"""quire chat: ask a question about a notebook, optionally continuing a session."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

from quire.cli.common import console, service_session


def chat_cmd(
    notebook_id: Annotated[str, typer.Argument(help="Notebook id.")],
    message: Annotated[str, typer.Argument(help="Your question.")],
    session: Annotated[
        str | None, typer.Option("--session", "-s", help="Continue this chat session.")
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the quire store.")] = None,
) -> None:
    """Answer MESSAGE from the notebook's sources."""
    with service_session(db) as service:
        response = service.chat(notebook_id, message, session)

    console.print(Markdown(response.message))
    if response.sources:
        names = ", ".join(s.name for s in response.sources)
        console.print(f"\n[dim]Sources: {names}[/]")
    console.print(f"[dim]Session: {response.session_id}[/]")
