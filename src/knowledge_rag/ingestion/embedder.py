"""Embedding service — one place to swap embedding providers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from knowledge_rag.errors import DimensionMismatch, EmbeddingServiceError, EmbeddingTimeout

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from knowledge_rag.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Maps text to fixed-dimension vectors through a LangChain ``Embeddings`` model.

    Vectors are returned exactly as the model produces them (no
    normalisation); the vector stores normalise internally when scoring.

    Parameters
    ----------
    model:
        Any ``langchain_core.embeddings.Embeddings`` implementation.
    dimension:
        Expected vector length *D*. Every vector is checked against it.
    """

    def __init__(self, model: Embeddings, dimension: int) -> None:
        self._model = model
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        """Embed a single query string."""
        try:
            vector = self._model.embed_query(text)
        except Exception as exc:
            raise _wrap(exc) from exc
        return self._checked(vector)

    def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* in one batched call, preserving order."""
        if not texts:
            return []
        try:
            vectors = self._model.embed_documents(list(texts))
        except Exception as exc:
            raise _wrap(exc) from exc
        if len(vectors) != len(texts):
            raise EmbeddingServiceError(
                f"embedding model returned {len(vectors)} vectors for {len(texts)} texts"
            )
        logger.debug("Embedded %d texts (dim=%d)", len(vectors), self.dimension)
        return [self._checked(v) for v in vectors]

    def _checked(self, vector: Sequence[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise DimensionMismatch(self.dimension, len(vector), context="embedding")
        return [float(x) for x in vector]


def _wrap(exc: Exception) -> EmbeddingServiceError:
    if isinstance(exc, TimeoutError):
        return EmbeddingTimeout(f"embedding request timed out: {exc}")
    logger.warning("Embedding model call failed: %s", exc)
    return EmbeddingServiceError(f"embedding request failed: {exc}")


def build_embedding_service(settings: Settings) -> EmbeddingService:
    """Construct the configured embedding backend.

    ``huggingface`` loads a sentence-transformer through
    ``langchain_huggingface``; ``fake`` uses LangChain's deterministic
    hash-based embedding and needs no model download.
    """
    if settings.embedding_backend == "fake":
        from langchain_core.embeddings import DeterministicFakeEmbedding

        model: Embeddings = DeterministicFakeEmbedding(size=settings.embedding_dimension)
    else:
        from langchain_huggingface import HuggingFaceEmbeddings

        logger.info("Loading embedding model %s", settings.embedding_model)
        model = HuggingFaceEmbeddings(model_name=settings.embedding_model)
    return EmbeddingService(model, settings.embedding_dimension)
