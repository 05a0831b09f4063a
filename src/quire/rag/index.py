"""Notebook-scoped vector index: chunk, embed, store, and k-NN search.

Chunks live in two tables of one SQLite database:
  chunks                  plain table: notebook_id, source_id, source_name,
                          chunk_index, text
  vec_chunks_<model>      sqlite-vec vec0 table keyed by the chunk rowid,
                          partitioned by notebook_id, cosine distance

Notebooks are loaded on demand. The first ``ensure_loaded`` call for a
notebook embeds all of its sources and marks it loaded; the check-and-set and
the bulk loop run under one lock, so concurrent callers load at most once.
The loaded set is owned by the index instance and lives as long as it does.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial

from quire.db.connection import Database
from quire.db.models import Chunk, Source
from quire.db.vectors import ensure_vec_table, model_to_slug, vec_table_name
from quire.ingest.plaintext import PlainTextChunker
from quire.log import get_logger
from quire.rag.llm_client import embed

log = get_logger(__name__)

EmbedFn = Callable[[str], list[float]]
ListSourcesFn = Callable[[str], Iterable[Source]]

# sqlite-vec refuses KNN queries with k above this.
_MAX_K = 4096

_CREATE_CHUNKS = """
CREATE TABLE IF NOT EXISTS chunks (
    notebook_id     TEXT NOT NULL,
    source_id       TEXT NOT NULL DEFAULT '',
    source_name     TEXT NOT NULL,
    chunk_index     INTEGER NOT NULL,
    text            TEXT NOT NULL
)
"""
_CREATE_CHUNKS_IDX = (
    "CREATE INDEX IF NOT EXISTS idx_chunks_notebook_source ON chunks(notebook_id, source_name)"
)
_CREATE_CHUNKS_SOURCE_IDX = (
    "CREATE INDEX IF NOT EXISTS idx_chunks_source_id ON chunks(source_id)"
)


@dataclass
class SearchResult:
    """A retrieved chunk with its cosine similarity to the query (higher = closer)."""

    text: str
    source_name: str
    score: float


@dataclass
class IndexStats:
    total_documents: int
    notebooks_loaded: int


class VectorIndex:
    """Chunk embeddings tagged by notebook and source, searchable per notebook.

    Args:
        conn: Connection with sqlite-vec loaded, opened with
            ``check_same_thread=False``.
        embed_fn: Maps text to an embedding vector.
        chunker: Splits source text; defaults to ``PlainTextChunker()``.
        model_slug: Suffix of the vec table (one table per embedding model).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        embed_fn: EmbedFn,
        chunker: PlainTextChunker | None = None,
        model_slug: str = "default",
    ) -> None:
        self._conn = conn
        self._embed = embed_fn
        self._chunker = chunker or PlainTextChunker()
        self._slug = model_slug
        self._vec_table: str | None = None
        self._db_lock = threading.RLock()
        self._load_lock = threading.Lock()
        self._loaded: set[str] = set()

        with self._db_lock:
            self._conn.execute(_CREATE_CHUNKS)
            self._add_source_id_column()
            self._conn.execute(_CREATE_CHUNKS_IDX)
            self._conn.execute(_CREATE_CHUNKS_SOURCE_IDX)
            self._conn.commit()
            self._vec_table = self._existing_vec_table()

    @classmethod
    def from_config(cls, config) -> VectorIndex:
        """Build an index from a ``QuireConfig`` (LiteLLM embeddings, sqlite-vec storage)."""
        conn = Database(config.index.path).connect()
        return cls(
            conn,
            embed_fn=partial(embed, config.embedding.model),
            chunker=PlainTextChunker(
                chunk_size=config.chunking.chunk_size,
                overlap=config.chunking.overlap,
            ),
            model_slug=model_to_slug(config.embedding.model),
        )

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def ingest(
        self, notebook_id: str, source_name: str, text: str, source_id: str = ""
    ) -> int:
        """Chunk, embed and insert *text*. Returns the number of chunks stored.

        Chunks are tagged with *source_id* so ``delete_source`` removes exactly
        this source, even when another source in the notebook shares its name.

        Every chunk is embedded before anything is written, so a failed
        embedding leaves no partial source behind. Content is not
        deduplicated: ingesting the same text twice stores it twice.
        """
        chunks = self._chunker.chunk(notebook_id, source_name, text)
        if not chunks:
            return 0

        for chunk in chunks:
            chunk.source_id = source_id
            chunk.embedding = self._embed(chunk.text)

        with self._db_lock:
            table = self._ensure_vec_table(len(chunks[0].embedding or []))
            try:
                for chunk in chunks:
                    cur = self._conn.execute(
                        "INSERT INTO chunks "
                        "(notebook_id, source_id, source_name, chunk_index, text) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (
                            chunk.notebook_id,
                            chunk.source_id,
                            chunk.source_name,
                            chunk.chunk_index,
                            chunk.text,
                        ),
                    )
                    chunk.rowid = cur.lastrowid
                    self._conn.execute(
                        f"INSERT INTO {table}(rowid, notebook_id, embedding) VALUES (?, ?, ?)",
                        (chunk.rowid, chunk.notebook_id, json.dumps(chunk.embedding)),
                    )
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise

        log.debug("ingested %d chunks for %s/%s", len(chunks), notebook_id, source_name)
        return len(chunks)

    def ensure_loaded(self, notebook_id: str, list_sources: ListSourcesFn) -> dict[str, int]:
        """Load every source of *notebook_id* into the index, once.

        Returns ``{source_id: chunk_count}`` for the sources ingested by this
        call; empty when the notebook was already loaded. Sources without
        content are skipped. A source that fails to ingest is logged and
        skipped; the notebook is still marked loaded.
        """
        with self._load_lock:
            return self._load_locked(notebook_id, list_sources)

    def add_source(
        self, notebook_id: str, source: Source, list_sources: ListSourcesFn
    ) -> int:
        """Index a newly stored *source* without double-loading it.

        If the notebook is already loaded only *source* is ingested; otherwise
        the whole notebook is loaded, which includes *source*.
        """
        with self._load_lock:
            if notebook_id in self._loaded:
                return self.ingest(notebook_id, source.name, source.content, source_id=source.id)
            return self._load_locked(notebook_id, list_sources).get(source.id, 0)

    def _load_locked(self, notebook_id: str, list_sources: ListSourcesFn) -> dict[str, int]:
        if notebook_id in self._loaded:
            return {}

        log.info("loading vector index for notebook %s", notebook_id)
        counts: dict[str, int] = {}
        for src in list_sources(notebook_id):
            if not src.content:
                continue
            try:
                counts[src.id] = self.ingest(notebook_id, src.name, src.content, source_id=src.id)
            except Exception as exc:  # noqa: BLE001
                log.error("failed to load source %s: %s", src.name, exc)

        self._loaded.add(notebook_id)
        log.info(
            "notebook %s loaded into vector index (%d total documents)",
            notebook_id,
            self.stats().total_documents,
        )
        return counts

    def is_loaded(self, notebook_id: str) -> bool:
        with self._load_lock:
            return notebook_id in self._loaded

    def delete_source(self, notebook_id: str, source_id: str) -> int:
        """Remove the chunks of source *source_id* in *notebook_id*. Returns the count."""
        with self._db_lock:
            return self._delete_where(
                "notebook_id = ? AND source_id = ?", (notebook_id, source_id)
            )

    def reset_notebook(self, notebook_id: str) -> int:
        """Drop all of a notebook's chunks and its loaded flag."""
        with self._load_lock, self._db_lock:
            self._loaded.discard(notebook_id)
            return self._delete_where("notebook_id = ?", (notebook_id,))

    def _delete_where(self, where: str, params: tuple) -> int:
        rowids = [
            r[0]
            for r in self._conn.execute(
                f"SELECT rowid FROM chunks WHERE {where}", params
            ).fetchall()
        ]
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        if self._vec_table is not None:
            self._conn.execute(
                f"DELETE FROM {self._vec_table} WHERE rowid IN ({placeholders})", rowids
            )
        self._conn.execute(f"DELETE FROM chunks WHERE rowid IN ({placeholders})", rowids)
        self._conn.commit()
        return len(rowids)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def search(self, notebook_id: str, query: str, k: int) -> list[SearchResult]:
        """Return up to *k* chunks of *notebook_id*, most similar first.

        Returns an empty list (no embedding call) when the notebook has no
        chunks or *k* is not positive.
        """
        if k <= 0:
            return []

        with self._db_lock:
            if self._vec_table is None or not self._has_chunks(notebook_id):
                return []

        query_embedding = self._embed(query)

        with self._db_lock:
            rows = self._conn.execute(
                f"""
                SELECT knn.rowid AS rowid, knn.distance AS distance,
                       c.text AS text, c.source_name AS source_name, c.notebook_id AS notebook_id
                FROM (
                    SELECT rowid, distance FROM {self._vec_table}
                    WHERE embedding MATCH ? AND k = ? AND notebook_id = ?
                ) AS knn
                JOIN chunks AS c ON c.rowid = knn.rowid
                ORDER BY knn.distance
                """,
                (json.dumps(query_embedding), min(k, _MAX_K), notebook_id),
            ).fetchall()

        results = [
            SearchResult(text=r["text"], source_name=r["source_name"], score=1.0 - r["distance"])
            for r in rows
            if r["notebook_id"] == notebook_id
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:k]

    def stats(self) -> IndexStats:
        with self._db_lock:
            total = self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        return IndexStats(total_documents=total, notebooks_loaded=len(self._loaded))

    def count_chunks(self, notebook_id: str, source_name: str | None = None) -> int:
        with self._db_lock:
            if source_name is None:
                sql, params = "SELECT COUNT(*) FROM chunks WHERE notebook_id = ?", (notebook_id,)
            else:
                sql = "SELECT COUNT(*) FROM chunks WHERE notebook_id = ? AND source_name = ?"
                params = (notebook_id, source_name)
            return self._conn.execute(sql, params).fetchone()[0]

    def close(self) -> None:
        with self._db_lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _has_chunks(self, notebook_id: str) -> bool:
        return (
            self._conn.execute(
                "SELECT 1 FROM chunks WHERE notebook_id = ? LIMIT 1", (notebook_id,)
            ).fetchone()
            is not None
        )

    def _add_source_id_column(self) -> None:
        # Indexes written before chunks carried their source id.
        columns = {r[1] for r in self._conn.execute("PRAGMA table_info(chunks)").fetchall()}
        if "source_id" not in columns:
            self._conn.execute(
                "ALTER TABLE chunks ADD COLUMN source_id TEXT NOT NULL DEFAULT ''"
            )

    def _existing_vec_table(self) -> str | None:
        table = vec_table_name(self._slug)
        row = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
        ).fetchone()
        return table if row else None

    def _ensure_vec_table(self, dimensions: int) -> str:
        if self._vec_table is None:
            self._vec_table = ensure_vec_table(self._conn, self._slug, dimensions)
        return self._vec_table
