"""quire rich error messages: what went wrong, and what to do about it.

Usage:
    from quire.cli.errors import describe_error
    console.print(describe_error(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from quire.config import ConfigError
from quire.errors import (
    DuplicateNoteError,
    GenerationError,
    InsightError,
    NoSourcesError,
    NotFoundError,
    ProviderNotConfiguredError,
)


def err_no_api_key(detail: str) -> str:
    """Provider credentials are missing.

    Example:
        No API key: GEMINI_API_KEY is not set. Set:  export GEMINI_API_KEY=...
    """
    return (
        f"[red]Error:[/] No API key: {detail.rstrip('.')}.\n"
        "  Set the provider key in the environment, e.g.:\n"
        "    export GEMINI_API_KEY=...   (default text and image models)\n"
        "    export GLM_API_KEY=<id>.<secret>   (images.provider: glm)\n"
        "    export ZIMAGE_API_KEY=...   (images.provider: zimage)"
    )


def err_not_found(detail: str) -> str:
    return (
        f"[red]Error:[/] {detail}.\n"
        "  Run:  quire notebook list  to see notebook ids."
    )


def err_no_sources(notebook_id: str = "") -> str:
    target = f" {notebook_id}" if notebook_id else " <notebook-id>"
    return (
        "[red]Error:[/] The notebook has no sources to work from.\n"
        f"  Run:  quire source add{target} --file <path>"
    )


def err_duplicate_note(detail: str) -> str:
    return (
        f"[red]Error:[/] {detail}.\n"
        "  Delete the existing note or set generation.allow_multiple_notes_of_same_type: true"
        " in quire.yaml."
    )


def err_generation(detail: str) -> str:
    return (
        f"[red]Error:[/] Generation failed: {detail}\n"
        "  Check the model name in quire.yaml and your network connection, then retry."
    )


def err_insight(detail: str, output: str = "") -> str:
    msg = (
        f"[red]Error:[/] Insight analysis failed: {detail}\n"
        "  Check insight.command in quire.yaml points at an executable DeepInsight binary."
    )
    if output:
        msg += f"\n  Tool output:\n{output.strip()}"
    return msg


def err_ssrf_blocked(url: str) -> str:
    """URL resolves to a private/reserved address."""
    return (
        f"[red]Error:[/] URL resolves to private address (SSRF protection): '{url}'\n"
        "  Use a publicly reachable URL."
    )


def err_config(detail: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {detail}"


def describe_error(exc: Exception) -> str:
    """Map a quire exception to an actionable rich message."""
    cause = exc.__cause__
    if isinstance(exc, ProviderNotConfiguredError):
        return err_no_api_key(str(exc))
    if isinstance(cause, ProviderNotConfiguredError):
        return err_no_api_key(str(cause))
    if isinstance(exc, GenerationError) and isinstance(cause, InsightError):
        return err_insight(str(cause), cause.output)
    if isinstance(exc, NotFoundError):
        return err_not_found(str(exc))
    if isinstance(exc, NoSourcesError):
        return err_no_sources()
    if isinstance(exc, DuplicateNoteError):
        return err_duplicate_note(str(exc))
    if isinstance(exc, GenerationError):
        return err_generation(str(exc))
    if isinstance(exc, ConfigError):
        return err_config(str(exc))
    return f"[red]Error:[/] {exc}"
