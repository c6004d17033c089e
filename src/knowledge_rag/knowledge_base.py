"""Composition root: wires chunker, embedder, store and retriever together.

Nothing here is a process-wide singleton; every :class:`KnowledgeBase`
owns the components it was built with.
"""

from __future__ import annotations

import logging
from typing import Any

from knowledge_rag.config import Settings
from knowledge_rag.ingestion.chunker import Chunker
from knowledge_rag.ingestion.embedder import EmbeddingService, build_embedding_service
from knowledge_rag.ingestion.pipeline import IngestionPipeline
from knowledge_rag.retrieval.base import VectorStoreBase
from knowledge_rag.retrieval.memory_store import InMemoryVectorStore
from knowledge_rag.retrieval.models import FilterSpec, IngestionResult, SearchResponse
from knowledge_rag.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> VectorStoreBase:
    """Return the vector-store backend named by ``settings.store_backend``."""
    if settings.store_backend == "chroma":
        from knowledge_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(host=settings.chroma_host, port=settings.chroma_port, path=settings.chroma_path)
    return InMemoryVectorStore()


class KnowledgeBase:
    """The two operations exposed to agents and HTTP handlers: ingest and search."""

    def __init__(
        self,
        embedder: EmbeddingService,
        store: VectorStoreBase,
        *,
        chunker: Chunker | None = None,
        index_name: str = "knowledge-base",
        default_max_results: int = 5,
        default_min_score: float | None = None,
        context_separator: str = "\n\n---\n\n",
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.index_name = index_name
        self.pipeline = IngestionPipeline(chunker or Chunker(), embedder, store, index_name=index_name)
        self.retriever = SemanticRetriever(
            store,
            embedder,
            index_name=index_name,
            default_k=default_max_results,
            score_threshold=default_min_score,
            context_separator=context_separator,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        embedder: EmbeddingService | None = None,
        store: VectorStoreBase | None = None,
    ) -> KnowledgeBase:
        """Build every component from *settings*; explicit components win."""
        logger.info(
            "Building knowledge base (index=%s, store=%s, embedding=%s)",
            settings.index_name,
            settings.store_backend,
            settings.embedding_backend,
        )
        return cls(
            embedder or build_embedding_service(settings),
            store or build_store(settings),
            chunker=Chunker(settings.chunk_size, settings.chunk_overlap, settings.chunk_separator or None),
            index_name=settings.index_name,
            default_max_results=settings.default_max_results,
            default_min_score=settings.default_min_score,
            context_separator=settings.context_separator,
        )

    def add_document(
        self,
        text: str,
        metadata: dict[str, Any] | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        *,
        document_id: str | None = None,
        separator: str | None = None,
    ) -> IngestionResult:
        """See :meth:`IngestionPipeline.add_document`. Raises on failure.

        *chunk_size* / *chunk_overlap* default to the chunker settings (512 / 50).
        """
        return self.pipeline.add_document(
            text,
            metadata,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            document_id=document_id,
            separator=separator,
        )

    def delete_document(self, document_id: str) -> None:
        self.pipeline.delete_document(document_id)

    def search(
        self,
        query: str,
        max_results: int | None = None,
        min_score: float | None = None,
        filters: FilterSpec = None,
    ) -> SearchResponse:
        """See :meth:`SemanticRetriever.search`. Never raises."""
        return self.retriever.search(query, max_results=max_results, min_score=min_score, filters=filters)

    def health_check(self) -> bool:
        return self.store.health_check()
