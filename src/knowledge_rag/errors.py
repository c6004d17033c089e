"""Error taxonomy for the knowledge base.

Ingestion errors propagate to the caller; search errors are caught by
:class:`~knowledge_rag.retrieval.retriever.SemanticRetriever` and turned
into a degraded response.
"""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base exception for knowledge_rag."""


class InvalidChunkConfig(KnowledgeBaseError):
    """Chunk size / overlap combination is unusable, or there is nothing to chunk."""


class EmbeddingServiceError(KnowledgeBaseError):
    """The upstream embedding model failed or returned malformed output."""


class EmbeddingTimeout(EmbeddingServiceError):
    """The embedding call exceeded the caller-side timeout."""


class DimensionMismatch(KnowledgeBaseError):
    """A vector does not match the dimensionality declared by its index."""

    def __init__(self, expected: int, actual: int, *, context: str = "vector") -> None:
        super().__init__(f"{context} has dimension {actual}, index expects {expected}")
        self.expected = expected
        self.actual = actual


class IndexAlreadyExists(KnowledgeBaseError):
    """Benign: ``create_index`` was called for an index that already exists."""

    def __init__(self, index_name: str) -> None:
        super().__init__(f"Index {index_name!r} already exists")
        self.index_name = index_name


class StoreError(KnowledgeBaseError):
    """Base class for vector-store backend failures."""


class StoreWriteError(StoreError):
    """An upsert or delete could not be applied."""


class StoreQueryError(StoreError):
    """A similarity query could not be executed."""


class InvalidMetadata(KnowledgeBaseError):
    """Caller metadata exceeds the number of extension fields a chunk may carry."""
