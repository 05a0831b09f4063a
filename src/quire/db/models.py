"""Domain models for the notebook store and the RAG core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Notebook:
    id: str
    name: str
    user_id: str = ""
    description: str = ""
    is_public: bool = False
    public_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Source:
    id: str
    notebook_id: str
    name: str
    type: str
    url: str = ""
    content: str = ""
    chunk_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None


@dataclass
class Note:
    id: str
    notebook_id: str
    title: str
    type: str
    content: str = ""
    source_ids: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None


@dataclass
class ChatMessage:
    role: str  # user | assistant
    content: str
    sources: list[str] = field(default_factory=list)
    id: str | None = None
    created_at: str | None = None


@dataclass
class ChatSession:
    id: str
    notebook_id: str
    title: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# Request / response contracts
# ---------------------------------------------------------------------------


@dataclass
class SourceSummary:
    id: str
    name: str
    type: str


@dataclass
class TransformationRequest:
    """A request to turn notebook sources into a derivative artifact.

    Attributes:
        type: Transformation kind (summary, faq, ppt, infograph, insight, ...).
        length: Target length hint (short / medium / long / ...).
        format: Target output format hint (markdown, ...).
        prompt: Free-form extra instruction from the user.
        source_ids: Restrict to these sources; empty means all sources.
    """

    type: str
    length: str = "medium"
    format: str = "markdown"
    prompt: str = ""
    source_ids: list[str] = field(default_factory=list)


@dataclass
class TransformationResponse:
    type: str
    content: str
    sources: list[SourceSummary] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResponse:
    message: str
    sources: list[SourceSummary] = field(default_factory=list)
    session_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Vector index
# ---------------------------------------------------------------------------


@dataclass
class Chunk:
    """One indexed segment of a source. Never mutated once stored."""

    notebook_id: str
    source_name: str
    chunk_index: int
    text: str
    source_id: str = ""
    embedding: list[float] | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks
