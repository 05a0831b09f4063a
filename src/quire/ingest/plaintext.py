"""Fixed-window text chunker used by the vector index.

Every source type (file, URL, pasted text, insight report) is reduced to plain
text before indexing, so one chunker covers them all. Sizes are in tokens,
approximated as 4 characters each.
"""

from __future__ import annotations

from collections.abc import Iterator

from quire.db.models import Chunk

CHARS_PER_TOKEN = 4


class PlainTextChunker:
    """Split text into overlapping windows tagged with notebook and source.

    Args:
        chunk_size: Window size in tokens.
        overlap: Fraction of the window repeated at the start of the next one.
    """

    def __init__(self, chunk_size: int = 512, overlap: float = 0.10) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0.0 <= overlap < 1.0:
            raise ValueError("overlap must be in [0.0, 1.0)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, notebook_id: str, source_name: str, content: str) -> list[Chunk]:
        """Return the non-empty windows of *content* with sequential ``chunk_index``."""
        return [
            Chunk(notebook_id=notebook_id, source_name=source_name, chunk_index=i, text=text)
            for i, text in enumerate(self._windows(content))
        ]

    def _windows(self, content: str) -> Iterator[str]:
        width = self.chunk_size * CHARS_PER_TOKEN
        step = max(1, width - int(width * self.overlap))
        for start in range(0, len(content), step):
            window = content[start : start + width].strip()
            if window:
                yield window
            if start + width >= len(content):
                break
