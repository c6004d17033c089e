"""Abstract base class for vector-store backends.

Adding a new backend only requires subclassing :class:`VectorStoreBase`
and implementing the abstract methods. Batch validation, cosine scoring
and result ordering helpers live here so every backend shares them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

from knowledge_rag.errors import DimensionMismatch, IndexAlreadyExists
from knowledge_rag.retrieval.models import FilterSpec, IndexSpec, SearchResult

logger = logging.getLogger(__name__)


def cosine_scores(matrix: Sequence[Sequence[float]], query: Sequence[float]) -> np.ndarray:
    """Cosine similarity of every row of *matrix* with *query*, clipped to [-1, 1].

    Rows or queries that are all zeros score 0.0.
    """
    rows = np.asarray(matrix, dtype=np.float64)
    q = np.asarray(query, dtype=np.float64)
    if rows.ndim != 2 or rows.shape[1] != q.shape[0]:
        raise DimensionMismatch(q.shape[0], rows.shape[-1], context="scored vector")
    norms = np.linalg.norm(rows, axis=1) * np.linalg.norm(q)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, rows @ q / norms, 0.0)
    return np.clip(scores, -1.0, 1.0)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """``dot(a, b) / (|a|·|b|)``; 0.0 when either vector is all zeros."""
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    return float(cosine_scores([a], b)[0])


def validate_batch(
    spec: IndexSpec,
    ids: Sequence[str],
    vectors: Sequence[Sequence[float]],
    metadata: Sequence[Mapping[str, Any]],
) -> None:
    """Reject the whole batch unless every row is well-formed."""
    if not (len(ids) == len(vectors) == len(metadata)):
        raise DimensionMismatch(
            len(ids),
            len(vectors) if len(vectors) != len(ids) else len(metadata),
            context=f"upsert batch for {spec.name!r} (ids/vectors/metadata lengths differ)",
        )
    for entry_id, vector in zip(ids, vectors):
        if len(vector) != spec.dimension:
            raise DimensionMismatch(spec.dimension, len(vector), context=f"vector {entry_id!r}")


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    All backends use cosine similarity and enforce the dimension declared
    at :meth:`create_index` time.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        """Create *name*; raise :class:`IndexAlreadyExists` if it is already there."""
        ...

    @abstractmethod
    def describe_index(self, name: str) -> IndexSpec | None:
        """Return the index declaration, or ``None`` when it does not exist."""
        ...

    @abstractmethod
    def upsert(
        self,
        index_name: str,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[Mapping[str, Any]],
    ) -> None:
        """Insert or replace entries; all-or-nothing per call.

        Raises
        ------
        DimensionMismatch
            When the three sequences differ in length or a vector does not
            match the index dimension. Nothing is written.
        StoreWriteError
            When the backend rejects the write.
        """
        ...

    @abstractmethod
    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: FilterSpec = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        """Return at most *top_k* results sorted by non-increasing score.

        Parameters
        ----------
        query_vector:
            Dense query vector; must match the index dimension.
        filters:
            Metadata filters applied before scoring.
        min_score:
            Only results scoring strictly above this are kept.

        Raises
        ------
        DimensionMismatch
            When *query_vector* has the wrong length.
        StoreQueryError
            When the index is missing or the backend fails.
        """
        ...

    @abstractmethod
    def delete(self, index_name: str, ids: Sequence[str]) -> None:
        """Remove entries by id; unknown ids are ignored."""
        ...

    @abstractmethod
    def delete_where(self, index_name: str, filters: FilterSpec) -> None:
        """Remove every entry whose metadata matches *filters* (at least one required)."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared helpers -------------------------------------------------------

    def ensure_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        """Idempotent :meth:`create_index`. Returns ``True`` if the index was created."""
        try:
            self.create_index(name, dimension, metric)
        except IndexAlreadyExists:
            logger.debug("Index %r already exists", name)
            return False
        logger.info("Created index %r (dimension=%d, metric=%s)", name, dimension, metric)
        return True
