"""In-memory reference implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
import operator
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from knowledge_rag.errors import DimensionMismatch, IndexAlreadyExists, StoreQueryError, StoreWriteError
from knowledge_rag.retrieval.base import VectorStoreBase, cosine_scores, validate_batch
from knowledge_rag.retrieval.models import (
    FilterSpec,
    IndexEntry,
    IndexSpec,
    MetadataFilter,
    SearchResult,
    coerce_filters,
)
from knowledge_rag.retrieval.ranker import rank

logger = logging.getLogger(__name__)

_COMPARATORS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "in": lambda actual, expected: actual in expected,
    "nin": lambda actual, expected: actual not in expected,
}


def matches(metadata: Mapping[str, Any], filters: list[MetadataFilter]) -> bool:
    """Return ``True`` when *metadata* satisfies every filter (logical AND)."""
    for f in filters:
        compare = _COMPARATORS.get(f.operator)
        if compare is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        if f.field not in metadata:
            if f.operator in ("ne", "nin"):
                continue
            return False
        try:
            if not compare(metadata[f.field], f.value):
                return False
        except TypeError:
            return False
    return True


class _Index:
    """Entries of one index.

    Readers take ``dict.copy()`` snapshots and never lock. Writers lock only
    the stripes covering the ids they touch, so two writers to the same id
    are serialised while writers to disjoint ids proceed in parallel.
    """

    _STRIPES = 64

    def __init__(self, spec: IndexSpec) -> None:
        self.spec = spec
        self.entries: dict[str, IndexEntry] = {}
        self._stripes = [threading.Lock() for _ in range(self._STRIPES)]

    def _locks_for(self, ids: Sequence[str]) -> list[threading.Lock]:
        # sorted acquisition order keeps concurrent batches deadlock-free
        slots = sorted({hash(i) % self._STRIPES for i in ids})
        return [self._stripes[s] for s in slots]

    def write(self, entries: list[IndexEntry]) -> None:
        locks = self._locks_for([e.id for e in entries])
        for lock in locks:
            lock.acquire()
        try:
            for entry in entries:
                self.entries[entry.id] = entry
        finally:
            for lock in reversed(locks):
                lock.release()

    def remove(self, ids: Sequence[str]) -> None:
        locks = self._locks_for(ids)
        for lock in locks:
            lock.acquire()
        try:
            for entry_id in ids:
                self.entries.pop(entry_id, None)
        finally:
            for lock in reversed(locks):
                lock.release()

    def snapshot(self) -> list[IndexEntry]:
        return list(self.entries.copy().values())


class InMemoryVectorStore(VectorStoreBase):
    """Process-local store scored with :func:`cosine_scores`; suited to tests and small corpora."""

    def __init__(self) -> None:
        self._indexes: dict[str, _Index] = {}
        self._registry_lock = threading.Lock()

    def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        spec = IndexSpec(name=name, dimension=dimension, metric=metric)
        with self._registry_lock:
            if name in self._indexes:
                raise IndexAlreadyExists(name)
            self._indexes[name] = _Index(spec)

    def describe_index(self, name: str) -> IndexSpec | None:
        index = self._indexes.get(name)
        return index.spec if index is not None else None

    def upsert(
        self,
        index_name: str,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[Mapping[str, Any]],
    ) -> None:
        index = self._indexes.get(index_name)
        if index is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        validate_batch(index.spec, ids, vectors, metadata)
        try:
            entries = [
                IndexEntry(id=i, vector=tuple(float(x) for x in v), metadata=dict(m))
                for i, v, m in zip(ids, vectors, metadata)
            ]
        except (TypeError, ValueError) as exc:
            raise StoreWriteError(f"Malformed upsert batch for {index_name!r}: {exc}") from exc
        index.write(entries)
        logger.debug("Upserted %d entries into %r", len(entries), index_name)

    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: FilterSpec = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        index = self._indexes.get(index_name)
        if index is None:
            raise StoreQueryError(f"Index {index_name!r} does not exist")
        if len(query_vector) != index.spec.dimension:
            raise DimensionMismatch(index.spec.dimension, len(query_vector), context="query vector")

        try:
            clauses = coerce_filters(filters)
            eligible = [e for e in index.snapshot() if matches(e.metadata, clauses)]
        except ValueError as exc:
            raise StoreQueryError(str(exc)) from exc
        if not eligible:
            return []

        scores = cosine_scores([e.vector for e in eligible], query_vector)

        results = [
            SearchResult(id=e.id, score=float(s), metadata=dict(e.metadata))
            for e, s in zip(eligible, scores)
        ]
        return rank(results, top_k, min_score)

    def delete(self, index_name: str, ids: Sequence[str]) -> None:
        index = self._indexes.get(index_name)
        if index is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        index.remove(ids)

    def delete_where(self, index_name: str, filters: FilterSpec) -> None:
        index = self._indexes.get(index_name)
        if index is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        clauses = coerce_filters(filters)
        if not clauses:
            raise StoreWriteError("delete_where requires at least one filter")
        index.remove([e.id for e in index.snapshot() if matches(e.metadata, clauses)])

    def health_check(self) -> bool:
        return True
