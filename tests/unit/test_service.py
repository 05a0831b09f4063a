"""Tests for NotebookService flows: sources, transformations, slides and chat."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from quire.db.cache import CachedRepository
from quire.db.models import Source, TransformationRequest
from quire.errors import (
    DuplicateNoteError,
    GenerationError,
    NoSourcesError,
    NotFoundError,
    ProviderError,
)
from quire.generate.orchestrator import Orchestrator
from quire.service import INSIGHT_SOURCE_NAME, NotebookService

DECK = """<STYLE_INSTRUCTIONS>Minimal, white space.</STYLE_INSTRUCTIONS>
## Slide 1: Intro
// NARRATIVE GOAL
Set the scene
## Slide 2: Results
// KEY CONTENT
Numbers
"""


@pytest.fixture
def text_provider():
    p = MagicMock()
    p.generate_from_single_prompt.return_value = "generated text"
    p.generate_text_with_model.return_value = DECK
    return p


@pytest.fixture
def image_provider(tmp_path):
    p = MagicMock()
    p.generate_image.side_effect = lambda model, prompt, user_id="": str(
        tmp_path / f"img_{p.generate_image.call_count}.png"
    )
    return p


@pytest.fixture
def insight_runner():
    runner = MagicMock()
    runner.run.return_value = "# Insight\ndeep findings about solar adoption"
    return runner


@pytest.fixture
def service(repo, index, config, text_provider, image_provider, insight_runner):
    orchestrator = Orchestrator(text_provider, index, config, insight_runner=insight_runner)
    return NotebookService(CachedRepository(repo), index, orchestrator, image_provider, config)


@pytest.fixture
def notebook(service):
    return service.create_notebook("Energy", "renewables research")


def _add(service, notebook, name="solar.md", content="solar panels turn sunlight into power"):
    return service.add_source(notebook.id, name, content=content)


# ------------------------------------------------------------------
# Notebooks
# ------------------------------------------------------------------


def test_create_and_get_notebook(service, notebook):
    assert service.get_notebook(notebook.id).name == "Energy"
    assert [n.id for n in service.list_notebooks()] == [notebook.id]


def test_get_missing_notebook(service):
    with pytest.raises(NotFoundError):
        service.get_notebook("nope")


def test_update_notebook_visible_immediately(service, notebook):
    service.get_notebook(notebook.id)
    updated = service.update_notebook(notebook.id, "Power", "grid")
    assert updated.name == "Power"
    assert service.get_notebook(notebook.id).description == "grid"


def test_delete_notebook_resets_index(service, notebook, index):
    _add(service, notebook)
    assert index.count_chunks(notebook.id) > 0
    service.delete_notebook(notebook.id)
    assert index.count_chunks(notebook.id) == 0
    assert not index.is_loaded(notebook.id)
    with pytest.raises(NotFoundError):
        service.get_notebook(notebook.id)


def test_share_and_unshare(service, notebook):
    token = service.set_public(notebook.id, True)
    assert token
    assert service.get_public_notebook(token).id == notebook.id
    service.set_public(notebook.id, False)
    with pytest.raises(NotFoundError):
        service.get_public_notebook(token)


# ------------------------------------------------------------------
# Sources
# ------------------------------------------------------------------


def test_add_source_indexes_and_counts_chunks(service, notebook, index):
    source = _add(service, notebook)
    assert source.chunk_count == 1
    assert service.list_sources(notebook.id)[0].chunk_count == 1
    assert index.is_loaded(notebook.id)


def test_add_second_source_not_double_indexed(service, notebook, index):
    _add(service, notebook)
    _add(service, notebook, "wind.md", "wind turbines")
    assert index.count_chunks(notebook.id, "solar.md") == 1
    assert index.count_chunks(notebook.id, "wind.md") == 1


def test_add_source_indexing_failure_keeps_source(service, notebook, index):
    with patch.object(index, "add_source", side_effect=RuntimeError("embed down")):
        source = _add(service, notebook)
    assert source.chunk_count == 0
    assert [s.id for s in service.list_sources(notebook.id)] == [source.id]


def test_add_url_source_fetches_content(service, notebook):
    with patch(
        "quire.service.extract_from_url", return_value="fetched page text"
    ) as fetch:
        source = service.add_source(
            notebook.id, "page", type="url", url="https://example.com/a"
        )
    fetch.assert_called_once_with("https://example.com/a")
    assert source.content == "fetched page text"
    assert source.url == "https://example.com/a"


def test_add_file_source(service, notebook, tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("# Notes\nbattery storage", encoding="utf-8")
    source = service.add_file_source(notebook.id, path)
    assert source.name == "notes.md"
    assert source.type == "file"
    assert source.metadata["size"] == path.stat().st_size


def test_add_source_to_missing_notebook(service):
    with pytest.raises(NotFoundError):
        service.add_source("missing", "x", content="y")


def test_delete_source_removes_chunks(service, notebook, index):
    source = _add(service, notebook)
    service.delete_source(notebook.id, source.id)
    assert service.list_sources(notebook.id) == []
    assert index.count_chunks(notebook.id) == 0


def test_delete_source_keeps_same_named_source(service, notebook, index):
    first = _add(service, notebook, name="notes.md", content="first upload about apples")
    second = _add(service, notebook, name="notes.md", content="second upload about pears")

    service.delete_source(notebook.id, first.id)

    assert [s.id for s in service.list_sources(notebook.id)] == [second.id]
    assert index.count_chunks(notebook.id, "notes.md") == second.chunk_count == 1


def test_delete_source_from_wrong_notebook(service, notebook):
    other = service.create_notebook("Other")
    source = _add(service, notebook)
    with pytest.raises(NotFoundError):
        service.delete_source(other.id, source.id)


def test_search_loads_notebook_lazily(service, notebook, repo, index):
    # Stored directly, so nothing is indexed until the first search.
    repo.create_source(
        Source(id="", notebook_id=notebook.id, name="a.md", type="text", content="tidal energy")
    )
    assert not index.is_loaded(notebook.id)
    results = service.search(notebook.id, "tidal")
    assert [r.source_name for r in results] == ["a.md"]


# ------------------------------------------------------------------
# Transformations
# ------------------------------------------------------------------


def test_transform_creates_note(service, notebook, text_provider):
    s1 = _add(service, notebook)
    s2 = _add(service, notebook, "wind.md", "wind")

    note = service.transform(notebook.id, TransformationRequest(type="summary"))

    assert note.title == "Summary"
    assert note.content == "generated text"
    assert note.source_ids == [s1.id, s2.id]
    assert note.metadata == {"length": "medium", "format": "markdown"}
    assert [n.id for n in service.list_notes(notebook.id)] == [note.id]


def test_transform_filters_sources(service, notebook, text_provider):
    _add(service, notebook)
    wind = _add(service, notebook, "wind.md", "wind turbines")

    note = service.transform(
        notebook.id, TransformationRequest(type="faq", source_ids=[wind.id])
    )

    prompt = text_provider.generate_from_single_prompt.call_args.args[0]
    assert "wind turbines" in prompt
    assert "sunlight" not in prompt
    assert note.source_ids == [wind.id]


def test_transform_without_sources(service, notebook):
    with pytest.raises(NoSourcesError):
        service.transform(notebook.id, TransformationRequest(type="summary"))


def test_transform_unknown_source_ids(service, notebook):
    _add(service, notebook)
    with pytest.raises(NoSourcesError):
        service.transform(
            notebook.id, TransformationRequest(type="summary", source_ids=["ghost"])
        )


def test_duplicate_type_refused_when_disabled(service, notebook, config):
    config.generation.allow_multiple_notes_of_same_type = False
    _add(service, notebook)
    service.transform(notebook.id, TransformationRequest(type="summary"))
    with pytest.raises(DuplicateNoteError):
        service.transform(notebook.id, TransformationRequest(type="summary"))
    service.transform(notebook.id, TransformationRequest(type="faq"))


def test_generation_failure_creates_no_note(service, notebook, text_provider):
    _add(service, notebook)
    text_provider.generate_from_single_prompt.side_effect = ProviderError("down")
    with pytest.raises(GenerationError):
        service.transform(notebook.id, TransformationRequest(type="summary"))
    assert service.list_notes(notebook.id) == []


def test_infograph_stores_image_path(service, notebook, image_provider, config):
    config.generation.image_prompt_suffix = "Labels in English."
    _add(service, notebook)

    note = service.transform(
        notebook.id, TransformationRequest(type="infograph"), user_id="u1"
    )

    model, prompt, user_id = image_provider.generate_image.call_args.args
    assert model == config.images.litellm_model
    assert prompt == "generated text\n\nLabels in English."
    assert user_id == "u1"
    assert note.metadata["image_url"].endswith(".png")
    assert note.content == ""


def test_infograph_image_failure_keeps_text(service, notebook, image_provider):
    image_provider.generate_image.side_effect = ProviderError("after 3 attempts")
    _add(service, notebook)

    note = service.transform(notebook.id, TransformationRequest(type="infograph"))

    assert note.content == "generated text"
    assert "after 3 attempts" in note.metadata["image_error"]
    assert "image_url" not in note.metadata


def test_ppt_renders_each_slide(service, notebook, image_provider):
    _add(service, notebook)

    note = service.transform(notebook.id, TransformationRequest(type="ppt"))

    assert note.title == "Slide Deck"
    assert note.content == DECK
    assert len(note.metadata["slides"]) == 2
    prompts = [c.args[1] for c in image_provider.generate_image.call_args_list]
    assert prompts[0].startswith("Style: Minimal, white space.\n\nSlide Content: ## Slide 1")
    assert "Results" in prompts[1]


def test_ppt_slide_failure_recorded(service, notebook, image_provider, tmp_path):
    image_provider.generate_image.side_effect = [ProviderError("x"), str(tmp_path / "2.png")]
    _add(service, notebook)

    note = service.transform(notebook.id, TransformationRequest(type="ppt"))

    assert note.metadata["slides"] == [str(tmp_path / "2.png")]
    assert note.metadata["slides_failed"] == [1]


def test_ppt_over_limit_skips_images(service, notebook, text_provider, image_provider):
    deck = "".join(f"## Slide {i}\n// KEY CONTENT\nc{i}\n" for i in range(1, 12))
    text_provider.generate_text_with_model.return_value = deck
    _add(service, notebook)

    note = service.transform(notebook.id, TransformationRequest(type="ppt"))

    image_provider.generate_image.assert_not_called()
    assert "11 slides, maximum allowed is 10" in note.metadata["image_error"]
    assert note.content == deck


def test_insight_report_becomes_source(service, notebook, insight_runner, index):
    _add(service, notebook)

    note = service.transform(notebook.id, TransformationRequest(type="insight"))

    insight_runner.run.assert_called_once_with("generated text")
    assert note.content.startswith("# Insight")
    sources = service.list_sources(notebook.id)
    report = [s for s in sources if s.name == INSIGHT_SOURCE_NAME]
    assert len(report) == 1
    assert report[0].type == "insight"
    assert report[0].chunk_count > 0
    assert index.count_chunks(notebook.id, INSIGHT_SOURCE_NAME) == report[0].chunk_count


# ------------------------------------------------------------------
# Chat
# ------------------------------------------------------------------


def test_chat_creates_session_and_persists_messages(service, notebook, repo):
    _add(service, notebook)

    response = service.chat(notebook.id, "what do solar panels do?")

    assert response.message == "generated text"
    session = repo.get_chat_session(response.session_id)
    assert [(m.role, m.content) for m in session.messages] == [
        ("user", "what do solar panels do?"),
        ("assistant", "generated text"),
    ]
    assert session.messages[1].sources == ["solar.md"]


def test_chat_continues_session_with_history(service, notebook, text_provider):
    _add(service, notebook)
    first = service.chat(notebook.id, "first question")

    second = service.chat(notebook.id, "second question", session_id=first.session_id)

    assert second.session_id == first.session_id
    prompt = text_provider.generate_from_single_prompt.call_args.args[0]
    assert "User: first question\nAssistant: generated text\n" in prompt
    assert "User: second question" not in prompt
    assert len(service.list_chat_sessions(notebook.id)) == 1


def test_chat_unknown_session(service, notebook):
    with pytest.raises(NotFoundError):
        service.chat(notebook.id, "hi", session_id="missing")


def test_chat_session_from_other_notebook(service, notebook):
    other = service.create_notebook("Other")
    first = service.chat(other.id, "hi")
    with pytest.raises(NotFoundError):
        service.chat(notebook.id, "hi", session_id=first.session_id)


def test_chat_failure_persists_nothing(service, notebook, text_provider, repo):
    _add(service, notebook)
    session = service.chat(notebook.id, "ok").session_id
    text_provider.generate_from_single_prompt.side_effect = ProviderError("down")
    with pytest.raises(GenerationError):
        service.chat(notebook.id, "fails", session_id=session)
    assert len(repo.get_chat_session(session).messages) == 2


def test_index_load_failure_degrades_to_empty_retrieval(service, notebook, repo, index):
    repo.create_source(
        Source(id="", notebook_id=notebook.id, name="a.md", type="text", content="tidal energy")
    )

    with patch.object(
        index, "ensure_loaded", side_effect=sqlite3.OperationalError("database is locked")
    ):
        assert service.search(notebook.id, "tidal") == []
        response = service.chat(notebook.id, "what about tides?")

    assert response.message == "generated text"
    assert response.sources == []
