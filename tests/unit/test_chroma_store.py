"""Unit tests for the Chroma backend, run against an in-process Chroma client."""

from __future__ import annotations

from uuid import uuid4

import pytest

from knowledge_rag.errors import DimensionMismatch, IndexAlreadyExists, StoreError, StoreQueryError, StoreWriteError
from knowledge_rag.ingestion.embedder import EmbeddingService
from knowledge_rag.knowledge_base import KnowledgeBase
from knowledge_rag.retrieval.models import MetadataFilter, SearchDegraded


@pytest.fixture(autouse=True)
def _skip_if_chroma_broken() -> None:
    """Skip if chromadb can't be imported in this environment."""
    try:
        from knowledge_rag.retrieval.chroma_store import ChromaVectorStore  # noqa: F401
    except Exception:
        pytest.skip("chromadb not importable in this environment")


@pytest.fixture()
def chroma_client():  # noqa: ANN201
    import chromadb

    try:
        return chromadb.EphemeralClient()
    except Exception:
        pytest.skip("in-process chroma client unavailable")


@pytest.fixture()
def store(chroma_client):  # noqa: ANN001, ANN201
    from knowledge_rag.retrieval.chroma_store import ChromaVectorStore

    return ChromaVectorStore(client=chroma_client)


@pytest.fixture()
def index_name() -> str:
    return f"test-{uuid4().hex[:12]}"


# ── Chroma where-clause builder tests ──────────────────────────────────


class TestBuildChromaWhere:
    def test_single_filter(self) -> None:
        from knowledge_rag.retrieval.chroma_store import _build_chroma_where

        where = _build_chroma_where([MetadataFilter.equals("source", "a.md")])
        assert where == {"source": {"$eq": "a.md"}}

    def test_multiple_filters_produce_and(self) -> None:
        from knowledge_rag.retrieval.chroma_store import _build_chroma_where

        filters = [
            MetadataFilter.equals("source", "a.md"),
            MetadataFilter(field="chunkIndex", operator="gte", value=5),
        ]
        where = _build_chroma_where(filters)
        assert "$and" in where
        assert len(where["$and"]) == 2

    def test_none_when_empty(self) -> None:
        from knowledge_rag.retrieval.chroma_store import _build_chroma_where

        assert _build_chroma_where([]) is None


class TestChromaMetadata:
    def test_nested_values_are_json_encoded(self) -> None:
        from knowledge_rag.retrieval.chroma_store import _to_chroma_metadata

        flat = _to_chroma_metadata({"tags": ["a", "b"], "n": 1, "skip": None, "ok": True})
        assert flat == {"tags": '["a", "b"]', "n": 1, "ok": True}


# ── Backend behaviour ──────────────────────────────────────────────────


class TestChromaVectorStore:
    def test_create_index_is_idempotent(self, store, index_name: str) -> None:  # noqa: ANN001
        assert store.ensure_index(index_name, 3) is True
        assert store.ensure_index(index_name, 3) is False
        with pytest.raises(IndexAlreadyExists):
            store.create_index(index_name, 3)
        assert store.describe_index(index_name).dimension == 3

    def test_self_retrieval_and_filters(self, store, index_name: str) -> None:  # noqa: ANN001
        store.create_index(index_name, 3)
        store.upsert(
            index_name,
            ids=["a", "b", "c"],
            vectors=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.7, 0.7, 0.0]],
            metadata=[
                {"text": "alpha", "source": "x.md"},
                {"text": "beta", "source": "y.md"},
                {"text": "gamma", "source": "x.md"},
            ],
        )
        results = store.query(index_name, [1.0, 0.0, 0.0], top_k=2)
        assert len(results) == 2
        assert results[0].id == "a"
        assert results[0].score == pytest.approx(1.0, abs=1e-4)
        assert results[0].metadata["text"] == "alpha"
        assert results[0].score >= results[1].score

        filtered = store.query(index_name, [0.0, 1.0, 0.0], top_k=5, filters={"source": "x.md"})
        assert {r.id for r in filtered} == {"a", "c"}

    def test_dimension_checks(self, store, index_name: str) -> None:  # noqa: ANN001
        store.create_index(index_name, 3)
        with pytest.raises(DimensionMismatch):
            store.upsert(index_name, ids=["a"], vectors=[[1.0, 0.0]], metadata=[{}])
        with pytest.raises(DimensionMismatch):
            store.query(index_name, [1.0])

    def test_empty_index_returns_nothing(self, store, index_name: str) -> None:  # noqa: ANN001
        store.create_index(index_name, 3)
        assert store.query(index_name, [1.0, 0.0, 0.0]) == []

    def test_missing_index_query(self, store) -> None:  # noqa: ANN001
        with pytest.raises(StoreQueryError):
            store.query(f"missing-{uuid4().hex[:8]}", [1.0, 0.0, 0.0])

    def test_delete_where(self, store, index_name: str) -> None:  # noqa: ANN001
        store.create_index(index_name, 2)
        store.upsert(
            index_name,
            ids=["d1-chunk-0", "d2-chunk-0"],
            vectors=[[1.0, 0.0], [0.0, 1.0]],
            metadata=[{"documentId": "d1"}, {"documentId": "d2"}],
        )
        store.delete_where(index_name, [MetadataFilter.equals("documentId", "d1")])
        assert [r.id for r in store.query(index_name, [1.0, 0.0], top_k=5)] == ["d2-chunk-0"]


# ── Collections created outside the knowledge base ─────────────────────


class TestForeignCollections:
    def test_describe_rejects_collection_without_dimension(
        self, store, chroma_client, index_name: str  # noqa: ANN001
    ) -> None:
        chroma_client.get_or_create_collection(index_name)
        with pytest.raises(StoreError, match=index_name):
            store.describe_index(index_name)

    def test_ingestion_into_plain_collection_is_a_write_error(
        self, store, chroma_client, index_name: str, embedder: EmbeddingService  # noqa: ANN001
    ) -> None:
        chroma_client.get_or_create_collection(index_name)
        kb = KnowledgeBase(embedder, store, index_name=index_name)
        with pytest.raises(StoreWriteError, match=index_name):
            kb.add_document("Mastra agents")

    def test_search_on_plain_collection_degrades(
        self, store, chroma_client, index_name: str, embedder: EmbeddingService  # noqa: ANN001
    ) -> None:
        chroma_client.get_or_create_collection(index_name)
        response = KnowledgeBase(embedder, store, index_name=index_name).search("Mastra")
        assert isinstance(response, SearchDegraded)
        assert response.search_performed is False

    def test_http_ingestion_into_plain_collection_is_502(
        self, store, chroma_client, index_name: str, embedder: EmbeddingService  # noqa: ANN001
    ) -> None:
        from fastapi.testclient import TestClient

        from knowledge_rag.serving.app import create_app

        chroma_client.get_or_create_collection(index_name)
        client = TestClient(create_app(KnowledgeBase(embedder, store, index_name=index_name)))
        response = client.post("/documents", json={"text": "Mastra agents"})
        assert response.status_code == 502
        assert response.json()["embedded"] is False
