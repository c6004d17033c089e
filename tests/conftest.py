"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import pytest
from langchain_core.embeddings import Embeddings

from knowledge_rag.ingestion.chunker import Chunker
from knowledge_rag.ingestion.embedder import EmbeddingService
from knowledge_rag.knowledge_base import KnowledgeBase
from knowledge_rag.retrieval.memory_store import InMemoryVectorStore

VOCABULARY = ("mastra", "agent", "python", "kubernetes", "vector")
"""One dimension per keyword plus a constant bias dimension."""

DIMENSION = len(VOCABULARY) + 1


class KeywordEmbeddings(Embeddings):
    """Deterministic bag-of-keywords embedding; counts batched calls."""

    def __init__(self) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    @staticmethod
    def vectorize(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(word)) for word in VOCABULARY] + [1.0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self.vectorize(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.vectorize(text)


class BrokenEmbeddings(Embeddings):
    """Simulates an unreachable embedding service."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ConnectionError("embedding service unreachable")

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        raise self.exc

    def embed_query(self, text: str) -> list[float]:
        raise self.exc


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def keyword_model() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture()
def embedder(keyword_model: KeywordEmbeddings) -> EmbeddingService:
    return EmbeddingService(keyword_model, DIMENSION)


@pytest.fixture()
def broken_embedder() -> EmbeddingService:
    return EmbeddingService(BrokenEmbeddings(), DIMENSION)


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def kb(embedder: EmbeddingService, memory_store: InMemoryVectorStore) -> KnowledgeBase:
    return KnowledgeBase(embedder, memory_store, chunker=Chunker(512, 50, "\n\n"), index_name="test-kb")
