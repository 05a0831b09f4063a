"""CLI fixtures: an isolated working directory, store and fake models."""

from __future__ import annotations

from pathlib import Path

import pytest

from quire.db.connection import Database
from quire.db.migrations import initialize
from quire.db.models import Notebook, Source
from quire.db.repository import Repository


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, embed_fn) -> Path:
    """Store path for ``--db``; cwd, global config and embeddings are isolated."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("quire.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setattr("quire.rag.index.embed", lambda _model, text: embed_fn(text))
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    for var in ("QUIRE_GENERATION_MODEL", "QUIRE_EMBEDDING_MODEL", "QUIRE_IMAGE_PROVIDER"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path / "nb.db"


@pytest.fixture
def seeded(db_path: Path) -> dict[str, str]:
    """A notebook with one text source, written straight to the store."""
    conn = Database(db_path, load_vec=False).connect()
    initialize(conn)
    repo = Repository(conn)
    notebook = repo.create_notebook(Notebook(id="", name="Energy"))
    source = repo.create_source(
        Source(
            id="",
            notebook_id=notebook.id,
            name="solar.md",
            type="text",
            content="solar panels convert sunlight into electricity",
        )
    )
    conn.close()
    return {"notebook": notebook.id, "source": source.id}
