"""Notebook service: the single entry point the CLI drives.

Wires the cached store, the vector index, the orchestrator and the image
provider together, and owns the multi-step flows (adding a source, running a
transformation, answering a chat message).
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from quire.config import QuireConfig
from quire.db.cache import CachedRepository
from quire.db.connection import Database
from quire.db.migrations import initialize
from quire.db.models import (
    ChatResponse,
    ChatSession,
    Note,
    Notebook,
    Source,
    TransformationRequest,
)
from quire.db.repository import Repository
from quire.errors import (
    DuplicateNoteError,
    NoSourcesError,
    NotFoundError,
    ProviderError,
    SlideLimitError,
)
from quire.generate.insight import DeepInsightCommand
from quire.generate.orchestrator import Orchestrator
from quire.generate.slides import check_slide_limit, segment_slides
from quire.generate.templates import title_for_type
from quire.ingest.extract import extract_document, extract_from_url
from quire.log import get_logger
from quire.providers import create_provider, create_text_provider, image_model_for
from quire.providers.base import Provider
from quire.rag.index import SearchResult, VectorIndex

log = get_logger(__name__)

INSIGHT_SOURCE_NAME = "Insight Report"


class NotebookService:
    """Notebook, source, note and chat operations over one store and one index.

    Args:
        repo: Cached metadata store.
        index: Vector index shared by all notebooks.
        orchestrator: Prompt assembly and text generation.
        image_provider: Backend for infographic and slide images.
        config: Loaded configuration.
    """

    def __init__(
        self,
        repo: CachedRepository,
        index: VectorIndex,
        orchestrator: Orchestrator,
        image_provider: Provider,
        config: QuireConfig,
    ) -> None:
        self.repo = repo
        self.index = index
        self.orchestrator = orchestrator
        self.image_provider = image_provider
        self.config = config
        self._store_conn = None

    @classmethod
    def from_config(cls, config: QuireConfig) -> NotebookService:
        """Open the store and index named in *config* and build the service."""
        conn = Database(config.store.path, load_vec=False).connect()
        initialize(conn)
        repo = CachedRepository(
            Repository(conn),
            ttl=config.cache.ttl_seconds,
            max_entries=config.cache.max_entries,
        )
        index = VectorIndex.from_config(config)
        orchestrator = Orchestrator(
            create_text_provider(config),
            index,
            config,
            insight_runner=DeepInsightCommand(
                config.insight.command,
                config.insight.output_dir,
                config.insight.timeout_seconds,
            ),
        )
        service = cls(
            repo, index, orchestrator, create_provider(config.images.provider, config), config
        )
        service._store_conn = conn
        return service

    def close(self) -> None:
        self.index.close()
        if self._store_conn is not None:
            self._store_conn.close()
            self._store_conn = None

    # ------------------------------------------------------------------
    # Notebooks
    # ------------------------------------------------------------------

    def create_notebook(self, name: str, description: str = "", user_id: str = "") -> Notebook:
        return self.repo.create_notebook(
            Notebook(id="", name=name, description=description, user_id=user_id)
        )

    def list_notebooks(self, user_id: str = "") -> list[Notebook]:
        return self.repo.list_notebooks(user_id)

    def get_notebook(self, notebook_id: str) -> Notebook:
        notebook = self.repo.get_notebook(notebook_id)
        if notebook is None:
            raise NotFoundError(f"notebook '{notebook_id}' not found")
        return notebook

    def update_notebook(self, notebook_id: str, name: str, description: str = "") -> Notebook:
        self.get_notebook(notebook_id)
        self.repo.update_notebook(notebook_id, name, description)
        return self.get_notebook(notebook_id)

    def delete_notebook(self, notebook_id: str) -> None:
        self.get_notebook(notebook_id)
        self.repo.delete_notebook(notebook_id)
        self.index.reset_notebook(notebook_id)

    def set_public(self, notebook_id: str, is_public: bool) -> str | None:
        """Share or unshare a notebook. Returns the public token when shared."""
        self.get_notebook(notebook_id)
        return self.repo.set_notebook_public(notebook_id, is_public)

    def get_public_notebook(self, token: str) -> Notebook:
        notebook = self.repo.get_notebook_by_public_token(token)
        if notebook is None:
            raise NotFoundError("public notebook not found")
        return notebook

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def list_sources(self, notebook_id: str) -> list[Source]:
        self.get_notebook(notebook_id)
        return self.repo.list_sources(notebook_id)

    def add_source(
        self,
        notebook_id: str,
        name: str,
        type: str = "text",
        content: str = "",
        url: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Source:
        """Store a source and index it.

        For ``url`` sources without content the page is fetched and converted
        to text first. An indexing failure is logged; the stored source is
        still returned, with a chunk count of 0.
        """
        self.get_notebook(notebook_id)
        if type == "url" and url and not content:
            content = extract_from_url(url)

        source = self.repo.create_source(
            Source(
                id="",
                notebook_id=notebook_id,
                name=name,
                type=type,
                url=url,
                content=content,
                metadata=dict(metadata or {}),
            )
        )
        return self._index_source(source)

    def add_file_source(self, notebook_id: str, path: str | Path) -> Source:
        """Extract text from the document at *path* and add it as a ``file`` source."""
        file_path = Path(path)
        content = extract_document(file_path)
        return self.add_source(
            notebook_id,
            name=file_path.name,
            type="file",
            content=content,
            metadata={"file_name": file_path.name, "size": file_path.stat().st_size},
        )

    def _index_source(self, source: Source) -> Source:
        if not source.content:
            return source
        try:
            count = self.index.add_source(source.notebook_id, source, self.repo.list_sources)
        except Exception as exc:  # noqa: BLE001
            log.error("failed to ingest source %s: %s", source.name, exc)
            return source
        self.repo.update_source_chunk_count(source.id, count)
        source.chunk_count = count
        return source

    def delete_source(self, notebook_id: str, source_id: str) -> None:
        source = self.repo.get_source(source_id)
        if source is None or source.notebook_id != notebook_id:
            raise NotFoundError(f"source '{source_id}' not found in notebook '{notebook_id}'")
        self.repo.delete_source(source_id)
        removed = self.index.delete_source(notebook_id, source_id)
        log.info("deleted source %s (%d chunks)", source.name, removed)

    def _ensure_loaded(self, notebook_id: str) -> None:
        # Retrieval degrades to what is already indexed; generation still runs.
        try:
            self.index.ensure_loaded(notebook_id, self.repo.list_sources)
        except Exception as exc:  # noqa: BLE001
            log.error("failed to load notebook %s into vector index: %s", notebook_id, exc)

    def search(self, notebook_id: str, query: str, k: int | None = None) -> list[SearchResult]:
        self.get_notebook(notebook_id)
        self._ensure_loaded(notebook_id)
        return self.index.search(
            notebook_id, query, k if k is not None else self.config.retrieval.max_sources
        )

    # ------------------------------------------------------------------
    # Notes / transformations
    # ------------------------------------------------------------------

    def list_notes(self, notebook_id: str) -> list[Note]:
        self.get_notebook(notebook_id)
        return self.repo.list_notes(notebook_id)

    def delete_note(self, note_id: str) -> None:
        self.repo.delete_note(note_id)

    def transform(
        self, notebook_id: str, request: TransformationRequest, user_id: str = ""
    ) -> Note:
        """Generate a note of ``request.type`` from the notebook's sources.

        Raises:
            NotFoundError: The notebook does not exist.
            DuplicateNoteError: A note of this type exists and duplicates are off.
            NoSourcesError: No sources match the request.
            GenerationError: Text generation failed.
        """
        self.get_notebook(notebook_id)
        self._ensure_loaded(notebook_id)

        if not self.config.generation.allow_multiple_notes_of_same_type:
            if any(n.type == request.type for n in self.repo.list_notes(notebook_id)):
                raise DuplicateNoteError(
                    f"notebook already has a '{request.type}' note; duplicates are disabled"
                )

        sources = self.repo.list_sources(notebook_id)
        if request.source_ids:
            wanted = set(request.source_ids)
            sources = [s for s in sources if s.id in wanted]
        else:
            request.source_ids = [s.id for s in sources]
        if not sources:
            raise NoSourcesError("no sources available")

        response = self.orchestrator.generate_transformation(request, sources)
        metadata: dict[str, Any] = dict(response.metadata)
        content = response.content

        if request.type == "infograph":
            try:
                metadata["image_url"] = self._generate_image(content, user_id)
                content = ""
            except ProviderError as exc:
                log.error("failed to generate infographic image: %s", exc)
                metadata["image_error"] = str(exc)
        elif request.type == "ppt":
            self._render_slides(content, metadata, user_id)

        note = self.repo.create_note(
            Note(
                id="",
                notebook_id=notebook_id,
                title=title_for_type(request.type),
                type=request.type,
                content=content,
                source_ids=list(request.source_ids),
                metadata=metadata,
            )
        )

        if request.type == "insight":
            self._store_insight(notebook_id, response.content, request.source_ids)
        return note

    def _generate_image(self, prompt: str, user_id: str) -> str:
        suffix = self.config.generation.image_prompt_suffix
        if suffix:
            prompt = f"{prompt}\n\n{suffix}"
        return self.image_provider.generate_image(image_model_for(self.config), prompt, user_id)

    def _render_slides(self, text: str, metadata: dict[str, Any], user_id: str) -> None:
        slides = segment_slides(text)
        try:
            check_slide_limit(slides)
        except SlideLimitError as exc:
            log.error("%s; skipping image generation", exc)
            metadata["image_error"] = str(exc)
            return

        log.info("generating %d slides", len(slides))
        paths: list[str] = []
        failed: list[int] = []
        for slide in slides:
            log.info("generating image for slide %d/%d", slide.order + 1, len(slides))
            prompt = f"Style: {slides[0].style}\n\nSlide Content: {slide.content}"
            try:
                paths.append(self._generate_image(prompt, user_id))
            except ProviderError as exc:
                log.error("failed to generate slide %d: %s", slide.order + 1, exc)
                failed.append(slide.order + 1)
        metadata["slides"] = paths
        if failed:
            metadata["slides_failed"] = failed

    def _store_insight(self, notebook_id: str, report: str, source_ids: list[str]) -> None:
        source = self.repo.create_source(
            Source(
                id="",
                notebook_id=notebook_id,
                name=INSIGHT_SOURCE_NAME,
                type="insight",
                content=report,
                metadata={
                    "generated_at": datetime.now().isoformat(),
                    "source_ids": list(source_ids),
                },
            )
        )
        self._index_source(source)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def list_chat_sessions(self, notebook_id: str) -> list[ChatSession]:
        self.get_notebook(notebook_id)
        return self.repo.list_chat_sessions(notebook_id)

    def chat(self, notebook_id: str, message: str, session_id: str | None = None) -> ChatResponse:
        """Answer *message* in *session_id*, creating a session when none is given.

        Both the question and the answer are appended to the session.
        """
        self.get_notebook(notebook_id)
        self._ensure_loaded(notebook_id)

        if session_id:
            session = self.repo.get_chat_session(session_id)
            if session is None or session.notebook_id != notebook_id:
                raise NotFoundError(f"chat session '{session_id}' not found")
        else:
            session = self.repo.create_chat_session(notebook_id)

        response = self.orchestrator.chat(notebook_id, message, session.messages)
        response.session_id = session.id

        self.repo.add_chat_message(session.id, "user", message)
        self.repo.add_chat_message(
            session.id, "assistant", response.message, [s.id for s in response.sources]
        )
        return response
