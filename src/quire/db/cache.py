"""Time-to-live cache in front of the notebook store.

``CachedRepository`` exposes the same methods as ``Repository``:

  * reads return a cached value while it is younger than ``ttl``; otherwise
    they fall through to the store and repopulate the entry
  * writes hit the store first, then invalidate every key the write affects,
    so a read that happens after a write never sees the pre-write value

Expiry is lazy: an entry is checked when read and dropped if stale. There is
no background sweeper; ``max_entries`` bounds growth from keys that are
written once and never read again.

Every invalidation bumps a generation counter. A read-through captures it
before fetching and only stores the fetched value if no invalidation ran in
between, so a slow read cannot put a pre-write value back after the write.
"""

from __future__ import annotations

import copy
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from quire.db.models import ChatMessage, ChatSession, Note, Notebook, Source
from quire.db.repository import Repository
from quire.log import get_logger

log = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL: float = 300.0
DEFAULT_MAX_ENTRIES: int = 10_000


@dataclass
class CacheEntry:
    key: str
    value: Any
    inserted_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now - self.inserted_at < self.ttl


class TTLCache:
    """Thread-safe key/value cache with a single fixed TTL and lazy expiry.

    Args:
        ttl: Lifetime of every entry in seconds.
        max_entries: Oldest-inserted entries are evicted beyond this size.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[bool, Any]:
        """Return ``(hit, value)``. Expired entries are removed and reported as misses."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if not entry.is_live(self._clock()):
                del self._entries[key]
                return False, None
            return True, entry.value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._set_locked(key, value)

    def generation(self) -> int:
        """Return the invalidation counter, for use with ``set_if_generation``."""
        with self._lock:
            return self._generation

    def set_if_generation(self, key: str, value: Any, generation: int) -> bool:
        """Store *value* only if nothing was invalidated since *generation* was read."""
        with self._lock:
            if generation != self._generation:
                return False
            self._set_locked(key, value)
            return True

    def invalidate(self, *keys: str) -> None:
        with self._lock:
            self._generation += 1
            for key in keys:
                self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            self._generation += 1
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def _set_locked(self, key: str, value: Any) -> None:
        # Re-insert so dict order tracks insertion time for eviction.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key, value, self._clock(), self.ttl)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CachedRepository:
    """Read-through / invalidate-on-write wrapper around ``Repository``.

    Values handed out are deep copies, so callers mutating a returned object
    cannot corrupt the cached one.
    """

    def __init__(
        self,
        repo: Repository,
        ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repo = repo
        self.cache = TTLCache(ttl=ttl, max_entries=max_entries, clock=clock)

    def _read(self, key: str, fetch: Callable[[], T]) -> T:
        hit, value = self.cache.get(key)
        if hit:
            return copy.deepcopy(value)
        generation = self.cache.generation()
        value = fetch()
        if value is None:
            log.debug("cache: not caching empty result for %s", key)
        elif not self.cache.set_if_generation(key, value, generation):
            log.debug("cache: %s invalidated during fetch, not caching", key)
        return copy.deepcopy(value)

    # ------------------------------------------------------------------
    # Notebooks
    # ------------------------------------------------------------------

    def create_notebook(self, notebook: Notebook) -> Notebook:
        created = self.repo.create_notebook(notebook)
        self.cache.invalidate(f"notebooks:{created.user_id}")
        return created

    def get_notebook(self, notebook_id: str) -> Notebook | None:
        return self._read(f"notebook:{notebook_id}", lambda: self.repo.get_notebook(notebook_id))

    def list_notebooks(self, user_id: str = "") -> list[Notebook]:
        return self._read(f"notebooks:{user_id}", lambda: self.repo.list_notebooks(user_id))

    def update_notebook(self, notebook_id: str, name: str, description: str) -> None:
        self.repo.update_notebook(notebook_id, name, description)
        self._invalidate_notebook(notebook_id)

    def delete_notebook(self, notebook_id: str) -> None:
        self.repo.delete_notebook(notebook_id)
        self._invalidate_notebook(notebook_id)
        self.cache.invalidate(
            f"sources:{notebook_id}", f"notes:{notebook_id}", f"sessions:{notebook_id}"
        )
        # Child rows cascade in the store; their per-id keys are unknown here.
        self.cache.invalidate_prefix("source:")
        self.cache.invalidate_prefix("session:")

    def set_notebook_public(self, notebook_id: str, is_public: bool) -> str | None:
        token = self.repo.set_notebook_public(notebook_id, is_public)
        self._invalidate_notebook(notebook_id)
        return token

    def get_notebook_by_public_token(self, token: str) -> Notebook | None:
        return self._read(
            f"public:{token}", lambda: self.repo.get_notebook_by_public_token(token)
        )

    def _invalidate_notebook(self, notebook_id: str) -> None:
        self.cache.invalidate(f"notebook:{notebook_id}")
        self.cache.invalidate_prefix("notebooks:")
        self.cache.invalidate_prefix("public:")

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def create_source(self, source: Source) -> Source:
        created = self.repo.create_source(source)
        self.cache.invalidate(f"sources:{created.notebook_id}")
        return created

    def get_source(self, source_id: str) -> Source | None:
        return self._read(f"source:{source_id}", lambda: self.repo.get_source(source_id))

    def list_sources(self, notebook_id: str) -> list[Source]:
        return self._read(f"sources:{notebook_id}", lambda: self.repo.list_sources(notebook_id))

    def update_source_chunk_count(self, source_id: str, chunk_count: int) -> None:
        existing = self.repo.get_source(source_id)
        self.repo.update_source_chunk_count(source_id, chunk_count)
        self._invalidate_source(source_id, existing)

    def delete_source(self, source_id: str) -> None:
        existing = self.repo.get_source(source_id)
        self.repo.delete_source(source_id)
        self._invalidate_source(source_id, existing)

    def _invalidate_source(self, source_id: str, existing: Source | None) -> None:
        self.cache.invalidate(f"source:{source_id}")
        if existing is not None:
            self.cache.invalidate(f"sources:{existing.notebook_id}")
        else:
            self.cache.invalidate_prefix("sources:")

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def create_note(self, note: Note) -> Note:
        created = self.repo.create_note(note)
        self.cache.invalidate(f"notes:{created.notebook_id}")
        return created

    def list_notes(self, notebook_id: str) -> list[Note]:
        return self._read(f"notes:{notebook_id}", lambda: self.repo.list_notes(notebook_id))

    def delete_note(self, note_id: str) -> None:
        self.repo.delete_note(note_id)
        self.cache.invalidate_prefix("notes:")

    # ------------------------------------------------------------------
    # Chat sessions
    # ------------------------------------------------------------------

    def create_chat_session(self, notebook_id: str, title: str = "") -> ChatSession:
        session = self.repo.create_chat_session(notebook_id, title)
        self.cache.invalidate(f"sessions:{notebook_id}")
        return session

    def get_chat_session(self, session_id: str) -> ChatSession | None:
        return self._read(
            f"session:{session_id}", lambda: self.repo.get_chat_session(session_id)
        )

    def list_chat_sessions(self, notebook_id: str) -> list[ChatSession]:
        return self._read(
            f"sessions:{notebook_id}", lambda: self.repo.list_chat_sessions(notebook_id)
        )

    def delete_chat_session(self, session_id: str) -> None:
        self.repo.delete_chat_session(session_id)
        self.cache.invalidate(f"session:{session_id}")
        self.cache.invalidate_prefix("sessions:")

    def add_chat_message(
        self,
        session_id: str,
        role: str,
        content: str,
        sources: list[str] | None = None,
    ) -> ChatMessage:
        message = self.repo.add_chat_message(session_id, role, content, sources)
        self.cache.invalidate(f"session:{session_id}")
        # Session ordering follows updated_at.
        self.cache.invalidate_prefix("sessions:")
        return message
