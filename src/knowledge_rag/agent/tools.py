"""LangChain tool definitions exposed to an agent.

Tools are built per :class:`~knowledge_rag.knowledge_base.KnowledgeBase`
by :func:`build_tools`, so tests can bind them to an in-memory instance.
Tool outputs are the camelCase dicts an LLM agent sees.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from knowledge_rag.errors import KnowledgeBaseError
from knowledge_rag.retrieval.models import IngestionResult

if TYPE_CHECKING:
    from knowledge_rag.knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)


class AddDocumentInput(BaseModel):
    text: str = Field(description="The document text to add")
    metadata: dict[str, Any] | None = Field(default=None, description="Optional metadata for the document")
    chunk_size: int = Field(default=512, description="Size of text chunks")
    chunk_overlap: int = Field(default=50, description="Overlap between chunks")


class RagSearchInput(BaseModel):
    query: str = Field(description="The user query to search for")
    max_results: int = Field(default=5, description="Maximum number of results")
    min_score: float | None = Field(default=None, description="Minimum relevance score")
    filter: dict[str, Any] | None = Field(default=None, description="Metadata filters to apply")


def build_tools(kb: KnowledgeBase) -> list[BaseTool]:
    """Return the ``add_document`` and ``rag_search`` tools bound to *kb*."""

    def add_document(
        text: str,
        metadata: dict[str, Any] | None = None,
        chunk_size: int = 512,
        chunk_overlap: int = 50,
    ) -> dict[str, Any]:
        try:
            result = kb.add_document(text, metadata, chunk_size, chunk_overlap)
        except (KnowledgeBaseError, ValueError) as exc:
            logger.error("add_document tool failed: %s", exc)
            result = IngestionResult.failed(exc)
        return result.model_dump(by_alias=True)

    def rag_search(
        query: str,
        max_results: int = 5,
        min_score: float | None = None,
        filter: dict[str, Any] | None = None,  # noqa: A002
    ) -> dict[str, Any]:
        response = kb.search(query, max_results=max_results, min_score=min_score, filters=filter)
        return response.model_dump(by_alias=True, mode="json")

    return [
        StructuredTool.from_function(
            func=add_document,
            name="add_document",
            description="Add a document to the knowledge base with chunking and embedding",
            args_schema=AddDocumentInput,
        ),
        StructuredTool.from_function(
            func=rag_search,
            name="rag_search",
            description="Search the knowledge base and return ranked, relevance-scored context",
            args_schema=RagSearchInput,
        ),
    ]
