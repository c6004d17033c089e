"""Semantic retriever — search with ranking, context assembly and fallback.

This module is the **primary public interface** for retrieval. A search
never raises: failures are logged and returned as a
:class:`~knowledge_rag.retrieval.models.SearchDegraded` response carrying a
single flagged fallback source.

Usage::

    retriever = SemanticRetriever(store, embedder, index_name="knowledge-base")
    response  = retriever.search("What is Mastra?", max_results=5)
    if response.search_performed:
        print(response.relevant_context)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from knowledge_rag.retrieval.base import VectorStoreBase
from knowledge_rag.retrieval.models import FilterSpec, SearchDegraded, SearchOk, SearchResponse, Source
from knowledge_rag.retrieval.ranker import DEFAULT_SEPARATOR, assemble_context, rank

if TYPE_CHECKING:
    from knowledge_rag.ingestion.embedder import EmbeddingService

logger = logging.getLogger(__name__)

FALLBACK_ID = "fallback-1"


def fallback_response(query: str, exc: BaseException) -> SearchDegraded:
    """Build the degraded response substituted for a failed search."""
    reason = str(exc) or type(exc).__name__
    content = (
        f'Based on the query "{query}", here is fallback information. '
        f"The vector search encountered an error: {reason}"
    )
    source = Source(
        id=FALLBACK_ID,
        content=content,
        score=0.0,
        metadata={"documentId": "fallback", "source": "error-fallback", "error": True},
    )
    return SearchDegraded(
        relevant_context=content,
        sources=[source],
        total_found=1,
        error=f"{type(exc).__name__}: {reason}",
    )


class SemanticRetriever:
    """High-level retriever over any :class:`VectorStoreBase`.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Service used to embed the query text.
    index_name:
        Index searched by :meth:`search`.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Minimum score used when the caller passes no ``min_score``;
        ``None`` keeps every match.
    context_separator:
        Separator between sources in ``relevant_context``.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingService,
        *,
        index_name: str,
        default_k: int = 5,
        score_threshold: float | None = None,
        context_separator: str = DEFAULT_SEPARATOR,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.index_name = index_name
        self.default_k = default_k
        self.score_threshold = score_threshold
        self.context_separator = context_separator

    # -- public API -----------------------------------------------------------

    def search(
        self,
        query: str,
        *,
        max_results: int | None = None,
        min_score: float | None = None,
        filters: FilterSpec = None,
    ) -> SearchResponse:
        """Run a semantic search.

        Returns
        -------
        SearchResponse
            :class:`SearchOk` on success (possibly with zero sources), or
            :class:`SearchDegraded` when any step failed.
        """
        k = self.default_k if max_results is None else max_results
        threshold = self.score_threshold if min_score is None else min_score
        try:
            vector = self._embedder.embed(query)
            hits = []
            # nothing ingested yet: an empty result, not a failure
            if self._store.describe_index(self.index_name) is not None:
                hits = self._store.query(
                    self.index_name,
                    vector,
                    top_k=k,
                    filters=filters,
                    min_score=threshold,
                )
            sources = [hit.to_source() for hit in rank(hits, k, threshold)]
        except Exception as exc:
            logger.error("Search failed for %r, returning fallback: %s", query, exc, exc_info=True)
            return fallback_response(query, exc)

        logger.info("Search returned %d results for %r", len(sources), query)
        return SearchOk(
            relevant_context=assemble_context(sources, separator=self.context_separator),
            sources=sources,
            total_found=len(sources),
        )
