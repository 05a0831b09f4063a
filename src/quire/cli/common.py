"""Shared CLI plumbing: open the service, map errors to exit codes."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from quire.cli.errors import describe_error, err_config
from quire.config import ConfigError, load_config
from quire.errors import QuireError
from quire.log import setup_logging
from quire.service import NotebookService

console = Console()


def open_service(db: Path | None = None) -> NotebookService:
    """Load configuration (``--db`` overrides ``store.path``) and build the service."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.store.path = str(db)
    setup_logging(cfg.logging.level)
    return NotebookService.from_config(cfg)


@contextmanager
def service_session(db: Path | None = None) -> Iterator[NotebookService]:
    """Yield a service; quire errors become a rich message and exit code 1."""
    service = open_service(db)
    try:
        yield service
    except (QuireError, ConfigError, ValueError, FileNotFoundError) as exc:
        console.print(describe_error(exc))
        raise typer.Exit(1) from exc
    finally:
        service.close()
