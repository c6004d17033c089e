"""
Retrieval — vector storage, similarity search, ranking, and context assembly.

The vector store sits behind :class:`VectorStoreBase` so callers never need
to know which backend serves a query.

Public surface
--------------
- :class:`SemanticRetriever` — search entry point; degrades instead of raising.
- :class:`VectorStoreBase` — abstract backend.
- :class:`InMemoryVectorStore` — reference backend.
- :class:`ChromaVectorStore` — Chroma server / file-backed backend.
- :func:`rank`, :func:`assemble_context` — result ordering and context text.
"""

from knowledge_rag.retrieval.base import VectorStoreBase, cosine_scores, cosine_similarity
from knowledge_rag.retrieval.memory_store import InMemoryVectorStore
from knowledge_rag.retrieval.models import (
    Chunk,
    IngestionResult,
    MetadataFilter,
    SearchDegraded,
    SearchOk,
    SearchResponse,
    SearchResult,
    Source,
)
from knowledge_rag.retrieval.ranker import NO_RESULTS_MESSAGE, assemble_context, rank
from knowledge_rag.retrieval.retriever import SemanticRetriever

__all__ = [
    "NO_RESULTS_MESSAGE",
    "Chunk",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "IngestionResult",
    "MetadataFilter",
    "SearchDegraded",
    "SearchOk",
    "SearchResponse",
    "SearchResult",
    "SemanticRetriever",
    "Source",
    "VectorStoreBase",
    "assemble_context",
    "cosine_scores",
    "cosine_similarity",
    "rank",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from knowledge_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
