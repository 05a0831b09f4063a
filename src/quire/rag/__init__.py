"""Retrieval: LiteLLM client and the notebook vector index."""

from quire.rag.index import IndexStats, SearchResult, VectorIndex

__all__ = ["IndexStats", "SearchResult", "VectorIndex"]
