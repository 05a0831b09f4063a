"""Exception hierarchy shared by the quire core.

Callers catch ``QuireError`` at the outermost boundary (CLI command, request
handler) and show the message; everything below re-raises with ``from`` so
the underlying cause stays attached.
"""

from __future__ import annotations


class QuireError(Exception):
    """Base class for all quire errors."""


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(QuireError):
    """A generation backend failed (terminal, after any retries)."""


class ProviderNotConfiguredError(ProviderError):
    """Credentials for a provider are missing. Never retried."""


class UnsupportedOperationError(ProviderError):
    """The provider does not implement the requested capability."""


class ProviderResponseError(ProviderError):
    """The upstream call succeeded but the response is unusable.

    Raised for explicit API error codes, empty candidate lists and missing
    payloads. Image generation retries on it; text generation does not.
    """


# ---------------------------------------------------------------------------
# Orchestration errors
# ---------------------------------------------------------------------------


class GenerationError(QuireError):
    """A transformation or chat answer could not be generated."""


class InsightError(QuireError):
    """The external insight analysis tool failed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class SlideLimitError(QuireError):
    """A slide deck has more slides than images may be generated for."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"slide deck contains {count} slides, maximum allowed is {limit}"
        )
        self.count = count
        self.limit = limit


# ---------------------------------------------------------------------------
# Notebook service errors
# ---------------------------------------------------------------------------


class NotFoundError(QuireError):
    """A notebook, source, note or chat session does not exist."""


class NoSourcesError(QuireError):
    """A transformation was requested for a notebook without usable sources."""


class DuplicateNoteError(QuireError):
    """A note of the requested type already exists and duplicates are disabled."""
