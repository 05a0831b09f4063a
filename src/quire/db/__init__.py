"""Notebook store, TTL cache and vector table helpers."""

from quire.db.cache import CachedRepository, TTLCache
from quire.db.connection import Database
from quire.db.migrations import MIGRATIONS, initialize, run_migrations
from quire.db.repository import Repository
from quire.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "CachedRepository",
    "Database",
    "MIGRATIONS",
    "Repository",
    "TTLCache",
    "ensure_vec_table",
    "initialize",
    "model_to_slug",
    "run_migrations",
    "vec_table_name",
]
