"""Chroma implementation of the vector-store abstraction.

Works against a Chroma server (``HttpClient``) or an embedded, file-backed
database (``PersistentClient``). Each index is one collection created with
``hnsw:space=cosine``; its dimension is recorded in the collection metadata.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import chromadb

from knowledge_rag.config import settings
from knowledge_rag.errors import (
    DimensionMismatch,
    IndexAlreadyExists,
    StoreError,
    StoreQueryError,
    StoreWriteError,
)
from knowledge_rag.retrieval.base import VectorStoreBase, validate_batch
from knowledge_rag.retrieval.models import FilterSpec, IndexSpec, MetadataFilter, SearchResult, coerce_filters
from knowledge_rag.retrieval.ranker import rank

logger = logging.getLogger(__name__)

_DIMENSION_KEY = "dimension"

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _to_chroma_metadata(metadata: Mapping[str, Any]) -> dict[str, str | int | float | bool]:
    """Chroma only stores scalars: drop ``None`` and JSON-encode anything nested."""
    flat: dict[str, str | int | float | bool] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = json.dumps(value, default=str, sort_keys=True)
    return flat


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    client:
        A ready ``chromadb`` client. When omitted one is built from *path*
        or *host*/*port*.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    path:
        Directory of an embedded, file-backed database. Takes precedence
        over *host*/*port*.
    """

    def __init__(
        self,
        client: Any = None,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        path: str = settings.chroma_path,
    ) -> None:
        if client is None:
            if path:
                client = chromadb.PersistentClient(path=path)
            else:
                client = chromadb.HttpClient(host=host, port=port)
        self._client = client
        self._collections: dict[str, Any] = {}

    # -- index management -----------------------------------------------------

    def _collection_names(self) -> set[str]:
        # list_collections() yields names on some chromadb releases, Collection objects on others
        return {c if isinstance(c, str) else c.name for c in self._client.list_collections()}

    def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        spec = IndexSpec(name=name, dimension=dimension, metric=metric)
        if name in self._collection_names():
            raise IndexAlreadyExists(name)
        try:
            self._collections[name] = self._client.create_collection(
                name=name,
                metadata={"hnsw:space": spec.metric, _DIMENSION_KEY: spec.dimension},
            )
        except Exception as exc:
            if name in self._collection_names():
                raise IndexAlreadyExists(name) from exc
            raise StoreWriteError(f"Could not create index {name!r}: {exc}") from exc

    def _collection(self, name: str) -> Any | None:
        collection = self._collections.get(name)
        if collection is None and name in self._collection_names():
            collection = self._client.get_collection(name=name)
            self._collections[name] = collection
        return collection

    def describe_index(self, name: str) -> IndexSpec | None:
        """Return the index declaration, or ``None`` when the collection does not exist.

        Raises
        ------
        StoreError
            When the collection exists but was not created by this store: it
            records no dimension, or it is not in cosine space.
        """
        collection = self._collection(name)
        if collection is None:
            return None
        meta = collection.metadata or {}
        if _DIMENSION_KEY not in meta:
            raise StoreError(f"Collection {name!r} has no recorded {_DIMENSION_KEY!r}; it is not a knowledge-base index")
        metric = meta.get("hnsw:space", "cosine")
        if metric != "cosine":
            raise StoreError(f"Collection {name!r} uses {metric!r} distance; only cosine indexes are supported")
        return IndexSpec(name=name, dimension=int(meta[_DIMENSION_KEY]), metric=metric)

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(
        self,
        index_name: str,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        metadata: Sequence[Mapping[str, Any]],
    ) -> None:
        try:
            spec = self.describe_index(index_name)
        except Exception as exc:
            raise StoreWriteError(f"Cannot write to {index_name!r}: {exc}") from exc
        if spec is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        validate_batch(spec, ids, vectors, metadata)
        if not ids:
            return
        try:
            # a single upsert call is applied as one batch by chroma
            self._collections[index_name].upsert(
                ids=list(ids),
                embeddings=[[float(x) for x in v] for v in vectors],
                metadatas=[_to_chroma_metadata(m) for m in metadata],
                documents=[str(m.get("text", "")) for m in metadata],
            )
        except Exception as exc:
            raise StoreWriteError(f"Chroma upsert into {index_name!r} failed: {exc}") from exc
        logger.debug("Upserted %d entries into chroma collection %r", len(ids), index_name)

    def query(
        self,
        index_name: str,
        query_vector: Sequence[float],
        *,
        top_k: int = 5,
        filters: FilterSpec = None,
        min_score: float | None = None,
    ) -> list[SearchResult]:
        try:
            spec = self.describe_index(index_name)
        except Exception as exc:
            raise StoreQueryError(f"Chroma unavailable: {exc}") from exc
        if spec is None:
            raise StoreQueryError(f"Index {index_name!r} does not exist")
        if len(query_vector) != spec.dimension:
            raise DimensionMismatch(spec.dimension, len(query_vector), context="query vector")
        if top_k <= 0:
            return []

        try:
            where = _build_chroma_where(coerce_filters(filters))
            collection = self._collections[index_name]
            if collection.count() == 0:
                return []
            results = collection.query(
                query_embeddings=[[float(x) for x in query_vector]],
                n_results=top_k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StoreQueryError(f"Chroma query on {index_name!r} failed: {exc}") from exc

        hits: list[SearchResult] = []
        ids = results.get("ids", [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for doc_id, content, meta, dist in zip(ids, docs, metas, distances):
            # cosine space: distance = 1 - cosine similarity
            metadata = dict(meta or {})
            metadata.setdefault("text", content or "")
            hits.append(SearchResult(id=doc_id, score=max(-1.0, min(1.0, 1.0 - dist)), metadata=metadata))
        return rank(hits, top_k, min_score)

    def delete(self, index_name: str, ids: Sequence[str]) -> None:
        if self._collection(index_name) is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        if not ids:
            return
        try:
            self._collections[index_name].delete(ids=list(ids))
        except Exception as exc:
            raise StoreWriteError(f"Chroma delete from {index_name!r} failed: {exc}") from exc

    def delete_where(self, index_name: str, filters: FilterSpec) -> None:
        if self._collection(index_name) is None:
            raise StoreWriteError(f"Index {index_name!r} does not exist")
        clauses = coerce_filters(filters)
        if not clauses:
            raise StoreWriteError("delete_where requires at least one filter")
        try:
            self._collections[index_name].delete(where=_build_chroma_where(clauses))
        except Exception as exc:
            raise StoreWriteError(f"Chroma delete from {index_name!r} failed: {exc}") from exc

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
