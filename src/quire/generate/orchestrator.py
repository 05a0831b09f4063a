"""Turn notebook sources and retrieved chunks into prompts and answers.

``generate_transformation`` builds a prompt from whole sources (each capped at
``max_context_length`` characters) and dispatches on the transformation kind:

  ppt      → text generation against the slides model
  insight  → a summary from the default model, then the external insight tool
  other    → single-prompt generation against the default model

``chat`` retrieves the notebook's closest chunks for the question, renders
them with the recent conversation into the chat template and asks the default
model.
"""

from __future__ import annotations

from datetime import datetime

from quire.config import QuireConfig
from quire.db.models import (
    ChatMessage,
    ChatResponse,
    Source,
    SourceSummary,
    TransformationRequest,
    TransformationResponse,
)
from quire.errors import GenerationError, QuireError
from quire.generate.insight import InsightRunner
from quire.generate.templates import CHAT_TEMPLATE, get_transformation_prompt
from quire.log import get_logger
from quire.providers.base import Provider
from quire.rag.index import VectorIndex

log = get_logger(__name__)

DEFAULT_MAX_CONTEXT_LENGTH = 100_000


def build_source_context(sources: list[Source], max_context_length: int) -> str:
    """Render *sources* as numbered sections, truncating long content.

    A non-positive *max_context_length* falls back to 100 000 characters.
    """
    limit = max_context_length if max_context_length > 0 else DEFAULT_MAX_CONTEXT_LENGTH
    parts: list[str] = []
    for i, src in enumerate(sources, start=1):
        parts.append(f"\n## Source {i}: {src.name}\n")
        if not src.content:
            parts.append(f"[Source content: {src.name}, type: {src.type}]")
        elif len(src.content) <= limit:
            parts.append(src.content)
        else:
            parts.append(src.content[:limit])
            parts.append(f"\n... [Content truncated, total length: {len(src.content)}]")
        parts.append("\n")
    return "".join(parts)


def format_history(history: list[ChatMessage], turns: int) -> str:
    """Render the last *turns* messages as ``User:`` / ``Assistant:`` lines."""
    recent = history[-turns:] if turns > 0 else []
    lines = []
    for msg in recent:
        role = "Assistant" if msg.role == "assistant" else "User"
        lines.append(f"{role}: {msg.content}\n")
    return "".join(lines)


class Orchestrator:
    """Prompt assembly and dispatch to the text provider.

    Args:
        provider: Backend used for all text generation.
        index: Vector index queried by ``chat``.
        config: Supplies models, context limits and retrieval depth.
        insight_runner: Runs the external analysis for ``insight`` requests.
    """

    def __init__(
        self,
        provider: Provider,
        index: VectorIndex,
        config: QuireConfig,
        insight_runner: InsightRunner | None = None,
    ) -> None:
        self.provider = provider
        self.index = index
        self.config = config
        self.insight_runner = insight_runner

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def generate_transformation(
        self, request: TransformationRequest, sources: list[Source]
    ) -> TransformationResponse:
        """Generate the artifact described by *request* from *sources*.

        Raises:
            GenerationError: The provider or the insight tool failed; the
                original error is chained.
        """
        context = build_source_context(sources, self.config.generation.max_context_length)
        prompt = get_transformation_prompt(request.type).format(
            sources=context,
            type=request.type,
            length=request.length,
            format=request.format,
            prompt=request.prompt,
        )

        log.info("generating %s from %d sources", request.type, len(sources))
        if request.type == "ppt":
            content = self._generate(
                lambda: self.provider.generate_text_with_model(
                    prompt, self.config.generation.slides_model
                ),
                "failed to generate response",
            )
        elif request.type == "insight":
            summary = self._generate(
                lambda: self.provider.generate_from_single_prompt(prompt),
                "failed to generate summary",
            )
            content = self._run_insight(summary)
        else:
            content = self._generate(
                lambda: self.provider.generate_from_single_prompt(prompt),
                "failed to generate response",
            )

        return TransformationResponse(
            type=request.type,
            content=content,
            sources=[SourceSummary(id=s.id, name=s.name, type=s.type) for s in sources],
            created_at=datetime.now(),
            metadata={"length": request.length, "format": request.format},
        )

    def _run_insight(self, summary: str) -> str:
        if self.insight_runner is None:
            raise GenerationError("failed to generate deep insight: no insight tool configured")
        return self._generate(
            lambda: self.insight_runner.run(summary),  # type: ignore[union-attr]
            "failed to generate deep insight",
        )

    @staticmethod
    def _generate(call, failure: str) -> str:
        try:
            return call()
        except QuireError as exc:
            raise GenerationError(f"{failure}: {exc}") from exc

    # Convenience wrappers over generate_transformation.

    def generate_summary(self, sources: list[Source], length: str = "medium") -> str:
        return self._simple("summary", sources, length)

    def generate_faq(self, sources: list[Source]) -> str:
        return self._simple("faq", sources, "comprehensive")

    def generate_outline(self, sources: list[Source]) -> str:
        return self._simple("outline", sources, "detailed")

    def generate_study_guide(self, sources: list[Source]) -> str:
        return self._simple("study_guide", sources, "comprehensive")

    def generate_podcast_script(self, sources: list[Source]) -> str:
        return self._simple("podcast", sources, "medium")

    def _simple(self, kind: str, sources: list[Source], length: str) -> str:
        request = TransformationRequest(type=kind, length=length, format="markdown")
        return self.generate_transformation(request, sources).content

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def chat(
        self, notebook_id: str, question: str, history: list[ChatMessage]
    ) -> ChatResponse:
        """Answer *question* from the notebook's closest chunks and recent history.

        The index must already hold the notebook (see ``VectorIndex.ensure_loaded``).

        Raises:
            GenerationError: Retrieval or generation failed.
        """
        try:
            results = self.index.search(
                notebook_id, question, self.config.retrieval.max_sources
            )
        except Exception as exc:
            raise GenerationError(f"failed to search documents: {exc}") from exc

        context_lines: list[str] = []
        for i, result in enumerate(results, start=1):
            context_lines.append(f"[Source {i}] {result.text}\n")
            context_lines.append(f"Source: {result.source_name}\n\n")

        prompt = CHAT_TEMPLATE.format(
            history=format_history(history, self.config.retrieval.history_turns),
            context="".join(context_lines),
            question=question,
        )
        answer = self._generate(
            lambda: self.provider.generate_from_single_prompt(prompt),
            "failed to generate response",
        )

        seen: set[str] = set()
        summaries: list[SourceSummary] = []
        for result in results:
            if result.source_name not in seen:
                seen.add(result.source_name)
                summaries.append(
                    SourceSummary(id=result.source_name, name=result.source_name, type="file")
                )

        return ChatResponse(
            message=answer,
            sources=summaries,
            session_id=notebook_id,
            metadata={"docs_retrieved": len(results)},
        )
