"""Repository pattern for the notebook metadata store.

Single interface for: notebooks, sources, notes, chat sessions and messages.
This is the persistent store surface wrapped by ``CachedRepository``.
"""

from __future__ import annotations

import json
import secrets
import sqlite3
import threading
import uuid

from quire.db.models import ChatMessage, ChatSession, Note, Notebook, Source

_NOTEBOOK_COLS = "id, user_id, name, description, is_public, public_token, created_at, updated_at"
_SOURCE_COLS = "id, notebook_id, name, type, url, content, chunk_count, metadata, created_at"
_NOTE_COLS = "id, notebook_id, title, content, type, source_ids, metadata, created_at"


def new_id() -> str:
    return uuid.uuid4().hex


class Repository:
    """Data access layer for all notebook entities.

    Wraps an open sqlite3.Connection (opened with ``check_same_thread=False``)
    and serialises every statement with a re-entrant lock so the repository
    can be shared between request threads. The connection is owned by the
    caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see quire.db.migrations.initialize).
        """
        self._conn = conn
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Notebooks
    # ------------------------------------------------------------------

    def create_notebook(self, notebook: Notebook) -> Notebook:
        """Insert *notebook*, assigning an id when empty. Returns the stored row."""
        if not notebook.id:
            notebook.id = new_id()
        with self._lock:
            self._conn.execute(
                "INSERT INTO notebooks (id, user_id, name, description) VALUES (?, ?, ?, ?)",
                (notebook.id, notebook.user_id, notebook.name, notebook.description),
            )
            self._conn.commit()
        return self.get_notebook(notebook.id)  # type: ignore[return-value]

    def get_notebook(self, notebook_id: str) -> Notebook | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_NOTEBOOK_COLS} FROM notebooks WHERE id = ?", (notebook_id,)
            ).fetchone()
        return _row_to_notebook(row) if row else None

    def list_notebooks(self, user_id: str = "") -> list[Notebook]:
        """Return notebooks owned by *user_id*, newest first.

        An empty *user_id* lists notebooks without an owner (single-user mode).
        """
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_NOTEBOOK_COLS} FROM notebooks WHERE user_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [_row_to_notebook(r) for r in rows]

    def update_notebook(self, notebook_id: str, name: str, description: str) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE notebooks SET name = ?, description = ?, updated_at = datetime('now') "
                "WHERE id = ?",
                (name, description, notebook_id),
            )
            self._conn.commit()

    def delete_notebook(self, notebook_id: str) -> None:
        """Delete a notebook; sources, notes and sessions cascade."""
        with self._lock:
            self._conn.execute("DELETE FROM notebooks WHERE id = ?", (notebook_id,))
            self._conn.commit()

    def set_notebook_public(self, notebook_id: str, is_public: bool) -> str | None:
        """Toggle public sharing. Returns the public token (None when private).

        An existing token is kept so shared links stay stable across toggles.
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT public_token FROM notebooks WHERE id = ?", (notebook_id,)
            ).fetchone()
            if row is None:
                return None
            token = row["public_token"] or secrets.token_urlsafe(16)
            self._conn.execute(
                "UPDATE notebooks SET is_public = ?, public_token = ?, "
                "updated_at = datetime('now') WHERE id = ?",
                (int(is_public), token, notebook_id),
            )
            self._conn.commit()
        return token if is_public else None

    def get_notebook_by_public_token(self, token: str) -> Notebook | None:
        """Return the public notebook for *token*; private notebooks are not returned."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_NOTEBOOK_COLS} FROM notebooks WHERE public_token = ? AND is_public = 1",
                (token,),
            ).fetchone()
        return _row_to_notebook(row) if row else None

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def create_source(self, source: Source) -> Source:
        if not source.id:
            source.id = new_id()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO sources (id, notebook_id, name, type, url, content, chunk_count, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    source.id,
                    source.notebook_id,
                    source.name,
                    source.type,
                    source.url,
                    source.content,
                    source.chunk_count,
                    json.dumps(source.metadata, default=str),
                ),
            )
            self._conn.commit()
        return self.get_source(source.id)  # type: ignore[return-value]

    def get_source(self, source_id: str) -> Source | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_SOURCE_COLS} FROM sources WHERE id = ?", (source_id,)
            ).fetchone()
        return _row_to_source(row) if row else None

    def list_sources(self, notebook_id: str) -> list[Source]:
        """Return the notebook's sources in insertion order (oldest first)."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLS} FROM sources WHERE notebook_id = ? ORDER BY rowid",
                (notebook_id,),
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    def update_source_chunk_count(self, source_id: str, chunk_count: int) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE sources SET chunk_count = ? WHERE id = ?", (chunk_count, source_id)
            )
            self._conn.commit()

    def delete_source(self, source_id: str) -> None:
        """Delete a source record. Index chunks are removed by the caller."""
        with self._lock:
            self._conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
            self._conn.commit()

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def create_note(self, note: Note) -> Note:
        if not note.id:
            note.id = new_id()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO notes (id, notebook_id, title, content, type, source_ids, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    note.id,
                    note.notebook_id,
                    note.title,
                    note.content,
                    note.type,
                    json.dumps(note.source_ids),
                    json.dumps(note.metadata, default=str),
                ),
            )
            self._conn.commit()
            row = self._conn.execute(
                f"SELECT {_NOTE_COLS} FROM notes WHERE id = ?", (note.id,)
            ).fetchone()
        return _row_to_note(row)

    def list_notes(self, notebook_id: str) -> list[Note]:
        """Return the notebook's notes, newest first."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_NOTE_COLS} FROM notes WHERE notebook_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (notebook_id,),
            ).fetchall()
        return [_row_to_note(r) for r in rows]

    def delete_note(self, note_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            self._conn.commit()

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    def create_chat_session(self, notebook_id: str, title: str = "") -> ChatSession:
        session_id = new_id()
        with self._lock:
            self._conn.execute(
                "INSERT INTO chat_sessions (id, notebook_id, title) VALUES (?, ?, ?)",
                (session_id, notebook_id, title),
            )
            self._conn.commit()
        return self.get_chat_session(session_id)  # type: ignore[return-value]

    def get_chat_session(self, session_id: str) -> ChatSession | None:
        """Return the session with its messages in chronological order."""
        with self._lock:
            row = self._conn.execute(
                "SELECT id, notebook_id, title, created_at, updated_at "
                "FROM chat_sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
            if row is None:
                return None
            msg_rows = self._conn.execute(
                "SELECT id, role, content, sources, created_at FROM chat_messages "
                "WHERE session_id = ? ORDER BY rowid",
                (session_id,),
            ).fetchall()
        return ChatSession(
            id=row["id"],
            notebook_id=row["notebook_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            messages=[_row_to_message(m) for m in msg_rows],
        )

    def list_chat_sessions(self, notebook_id: str) -> list[ChatSession]:
        """Return the notebook's sessions (without messages), most recent first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, notebook_id, title, created_at, updated_at FROM chat_sessions "
                "WHERE notebook_id = ? ORDER BY updated_at DESC, rowid DESC",
                (notebook_id,),
            ).fetchall()
        return [
            ChatSession(
                id=r["id"],
                notebook_id=r["notebook_id"],
                title=r["title"],
                created_at=r["created_at"],
                updated_at=r["updated_at"],
            )
            for r in rows
        ]

    def delete_chat_session(self, session_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))
            self._conn.commit()

    def add_chat_message(
        self,
        session_id: str,
        role: str,
        content: str,
        sources: list[str] | None = None,
    ) -> ChatMessage:
        message = ChatMessage(
            id=new_id(), role=role, content=content, sources=list(sources or [])
        )
        with self._lock:
            self._conn.execute(
                "INSERT INTO chat_messages (id, session_id, role, content, sources) "
                "VALUES (?, ?, ?, ?, ?)",
                (message.id, session_id, role, content, json.dumps(message.sources)),
            )
            self._conn.execute(
                "UPDATE chat_sessions SET updated_at = datetime('now') WHERE id = ?",
                (session_id,),
            )
            self._conn.commit()
        return message


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_notebook(row: sqlite3.Row) -> Notebook:
    return Notebook(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        description=row["description"],
        is_public=bool(row["is_public"]),
        public_token=row["public_token"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        notebook_id=row["notebook_id"],
        name=row["name"],
        type=row["type"],
        url=row["url"],
        content=row["content"],
        chunk_count=row["chunk_count"],
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        notebook_id=row["notebook_id"],
        title=row["title"],
        content=row["content"],
        type=row["type"],
        source_ids=json.loads(row["source_ids"]),
        metadata=json.loads(row["metadata"]),
        created_at=row["created_at"],
    )


def _row_to_message(row: sqlite3.Row) -> ChatMessage:
    return ChatMessage(
        id=row["id"],
        role=row["role"],
        content=row["content"],
        sources=json.loads(row["sources"]),
        created_at=row["created_at"],
    )
