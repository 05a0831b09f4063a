"""Shared pytest fixtures."""

from __future__ import annotations

import math
import re
import zlib

import pytest

from quire.config import QuireConfig
from quire.db.connection import MEMORY, Database
from quire.db.migrations import initialize
from quire.db.repository import Repository
from quire.ingest.plaintext import PlainTextChunker
from quire.rag.index import VectorIndex

EMBED_DIMS = 32


def fake_embed(text: str) -> list[float]:
    """Deterministic bag-of-words embedding: texts sharing words score higher."""
    vec = [0.01] * EMBED_DIMS
    for word in re.findall(r"\w+", text.lower()):
        vec[zlib.crc32(word.encode()) % EMBED_DIMS] += 1.0
    norm = math.sqrt(sum(v * v for v in vec))
    return [v / norm for v in vec]


@pytest.fixture
def store_conn(tmp_path):
    """File-based metadata store in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / ".quire.db", load_vec=False).connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(store_conn):
    return Repository(store_conn)


@pytest.fixture
def index():
    """In-memory vector index with the fake embedder and small chunks."""
    idx = VectorIndex(
        Database(MEMORY).connect(),
        embed_fn=fake_embed,
        chunker=PlainTextChunker(chunk_size=16, overlap=0.0),
    )
    yield idx
    idx.close()


@pytest.fixture
def config(tmp_path):
    cfg = QuireConfig()
    cfg.store.path = str(tmp_path / ".quire.db")
    cfg.images.output_dir = str(tmp_path / "uploads")
    cfg.images.backoff_seconds = 0.0
    cfg.insight.output_dir = str(tmp_path / "insight")
    return cfg


@pytest.fixture
def embed_fn():
    return fake_embed
