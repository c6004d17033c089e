"""Text chunking: overlapping windows that prefer separator boundaries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from knowledge_rag.errors import InvalidChunkConfig, InvalidMetadata
from knowledge_rag.retrieval.models import MAX_EXTRA_FIELDS, Chunk, ChunkMetadata, chunk_id, new_document_id


def validate_chunk_config(size: int, overlap: int) -> None:
    if size <= 0:
        raise InvalidChunkConfig(f"chunk_size must be positive, got {size}")
    if overlap < 0:
        raise InvalidChunkConfig(f"chunk_overlap must be non-negative, got {overlap}")
    if overlap >= size:
        raise InvalidChunkConfig(f"chunk_overlap ({overlap}) must be < chunk_size ({size})")


def window_bounds(text: str, size: int, overlap: int, separator: str | None = None) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of every chunk of *text*.

    Consecutive windows always share exactly *overlap* characters. With a
    *separator*, a window is cut just after the last separator it contains,
    as long as the cut still lies beyond the overlap region.
    """
    validate_chunk_config(size, overlap)
    n = len(text)
    if n <= size:
        return [(0, n)]

    bounds: list[tuple[int, int]] = []
    start = 0
    while True:
        end = min(start + size, n)
        if end < n and separator:
            pos = text.rfind(separator, start, end)
            cut = pos + len(separator)
            if pos != -1 and cut > start + overlap:
                end = cut
        bounds.append((start, end))
        if end >= n:
            return bounds
        start = end - overlap


def split(
    text: str,
    size: int,
    overlap: int,
    separator: str | None = None,
    *,
    document_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> list[Chunk]:
    """Split *text* into ordered, overlapping :class:`Chunk` objects.

    Parameters
    ----------
    text:
        Document text. Empty text is rejected.
    size:
        Maximum characters per chunk.
    overlap:
        Characters shared by consecutive chunks; must be ``< size``.
    separator:
        Preferred boundary (e.g. ``"\\n\\n"``). ``None`` means a plain sliding window.
    document_id:
        Parent document id; generated when omitted.
    metadata:
        Caller metadata inherited by every chunk. ``source`` is lifted into
        the typed core, everything else goes to the extension map.

    Raises
    ------
    InvalidChunkConfig
        On an invalid size/overlap pair or empty text.
    InvalidMetadata
        When *metadata* carries more than ``MAX_EXTRA_FIELDS`` extension keys.
    """
    validate_chunk_config(size, overlap)
    if not text:
        raise InvalidChunkConfig("cannot chunk an empty document")

    document_id = document_id or new_document_id()
    extra = dict(metadata or {})
    source = str(extra.pop("source", "unknown"))
    if len(extra) > MAX_EXTRA_FIELDS:
        raise InvalidMetadata(f"at most {MAX_EXTRA_FIELDS} metadata fields allowed, got {len(extra)}")
    added_at = datetime.now(timezone.utc)

    chunks: list[Chunk] = []
    for index, (start, end) in enumerate(window_bounds(text, size, overlap, separator)):
        chunks.append(
            Chunk(
                id=chunk_id(document_id, index),
                document_id=document_id,
                index=index,
                text=text[start:end],
                start=start,
                metadata=ChunkMetadata(
                    document_id=document_id,
                    source=source,
                    chunk_index=index,
                    added_at=added_at,
                    extra=extra,
                ),
            )
        )
    return chunks


class Chunker:
    """Carries chunking defaults so pipelines can be configured once."""

    def __init__(self, size: int = 512, overlap: int = 50, separator: str | None = "\n\n") -> None:
        validate_chunk_config(size, overlap)
        self.size = size
        self.overlap = overlap
        self.separator = separator

    def split(
        self,
        text: str,
        *,
        size: int | None = None,
        overlap: int | None = None,
        separator: str | None = None,
        document_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[Chunk]:
        """Split with the configured defaults; ``separator=""`` forces a plain sliding window."""
        return split(
            text,
            self.size if size is None else size,
            self.overlap if overlap is None else overlap,
            (self.separator if separator is None else separator) or None,
            document_id=document_id,
            metadata=metadata,
        )
