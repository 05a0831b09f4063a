"""Chunking and document extraction for notebook sources."""

from quire.ingest.extract import extract_document, extract_from_url
from quire.ingest.plaintext import PlainTextChunker

__all__ = [
    "PlainTextChunker",
    "extract_document",
    "extract_from_url",
]
