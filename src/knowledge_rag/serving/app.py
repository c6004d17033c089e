"""FastAPI application exposing document ingestion and search over REST.

Run with ``uvicorn knowledge_rag.serving.app:create_app --factory``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from knowledge_rag.config import Settings, configure_logging
from knowledge_rag.errors import InvalidChunkConfig, InvalidMetadata, KnowledgeBaseError
from knowledge_rag.knowledge_base import KnowledgeBase
from knowledge_rag.retrieval.models import IngestionResult, SearchResponse

logger = logging.getLogger(__name__)


# ── Request schemas ───────────────────────────────────────────────────
class AddDocumentRequest(BaseModel):
    """Document to ingest."""

    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    chunk_size: int = Field(default=512, alias="chunkSize")
    chunk_overlap: int = Field(default=50, alias="chunkOverlap")
    document_id: str | None = Field(default=None, alias="documentId")

    model_config = {"populate_by_name": True}


class SearchRequest(BaseModel):
    """Incoming question from the user."""

    query: str = ""
    max_results: int = Field(default=5, alias="maxResults")
    min_score: float | None = Field(default=None, alias="minScore")
    filter: dict[str, Any] | None = None

    model_config = {"populate_by_name": True}


def get_knowledge_base(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


def create_app(kb: KnowledgeBase | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the API around *kb*, or a knowledge base built from *settings*."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Knowledge RAG API",
        version="0.1.0",
        description="Document ingestion and semantic search over a vector knowledge base.",
    )
    app.state.knowledge_base = kb or KnowledgeBase.from_settings(settings)

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    def health(kb: KnowledgeBase = Depends(get_knowledge_base)) -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok" if kb.health_check() else "degraded"}

    @app.post("/documents")
    def add_document(
        request: AddDocumentRequest,
        kb: KnowledgeBase = Depends(get_knowledge_base),
    ) -> JSONResponse:
        """Chunk, embed and store a document."""
        if not request.text:
            raise HTTPException(status_code=400, detail="Text is required")
        try:
            result = kb.add_document(
                request.text,
                request.metadata,
                request.chunk_size,
                request.chunk_overlap,
                document_id=request.document_id,
            )
        except (InvalidChunkConfig, InvalidMetadata, ValueError) as exc:
            return JSONResponse(status_code=400, content=IngestionResult.failed(exc).model_dump(by_alias=True))
        except KnowledgeBaseError as exc:
            logger.error("Error adding document: %s", exc)
            return JSONResponse(status_code=502, content=IngestionResult.failed(exc).model_dump(by_alias=True))
        return JSONResponse(status_code=201, content=result.model_dump(by_alias=True))

    @app.delete("/documents/{document_id}", status_code=204)
    def delete_document(document_id: str, kb: KnowledgeBase = Depends(get_knowledge_base)) -> None:
        try:
            kb.delete_document(document_id)
        except KnowledgeBaseError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    @app.post("/search")
    def search(request: SearchRequest, kb: KnowledgeBase = Depends(get_knowledge_base)) -> dict[str, Any]:
        """Search the knowledge base. Retrieval failures come back as a degraded 200 response."""
        if not request.query:
            raise HTTPException(status_code=400, detail="Query is required")
        response: SearchResponse = kb.search(
            request.query,
            max_results=request.max_results,
            min_score=request.min_score,
            filters=request.filter,
        )
        return response.model_dump(by_alias=True, mode="json")

    return app
