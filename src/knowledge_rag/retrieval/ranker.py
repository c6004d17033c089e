"""Ranking and context assembly applied after the vector-store query."""

from __future__ import annotations

from collections.abc import Iterable

from knowledge_rag.retrieval.models import SearchResult, Source

NO_RESULTS_MESSAGE = "No relevant documents found."
DEFAULT_SEPARATOR = "\n\n---\n\n"


def rank(results: Iterable[SearchResult], top_k: int, min_score: float | None = None) -> list[SearchResult]:
    """Filter by *min_score*, stable-sort by descending score and truncate to *top_k*.

    Ties keep their incoming order.
    """
    kept = [r for r in results if min_score is None or r.score > min_score]
    kept.sort(key=lambda r: r.score, reverse=True)
    return kept[: max(top_k, 0)]


def source_tag(source: Source) -> str:
    return f"[Source: {source.metadata.get('documentId') or 'unknown'}]"


def assemble_context(
    sources: Iterable[Source],
    *,
    separator: str = DEFAULT_SEPARATOR,
    tag_sources: bool = True,
) -> str:
    """Join source contents in rank order into a single context block.

    An empty input yields :data:`NO_RESULTS_MESSAGE` so callers can tell
    "searched, nothing matched" apart from an empty string.
    """
    blocks = [f"{source_tag(s)}\n{s.content}" if tag_sources else s.content for s in sources]
    if not blocks:
        return NO_RESULTS_MESSAGE
    return separator.join(blocks)
