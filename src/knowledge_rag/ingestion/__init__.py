"""
Ingestion — chunking, embedding, and writing documents into a vector store.

Public surface
--------------
- :class:`Chunker` / :func:`split` — overlapping, separator-aware chunking.
- :class:`EmbeddingService` — batched embedding through a LangChain model.
- :class:`IngestionPipeline` — chunk → embed → upsert orchestration.
"""

from knowledge_rag.ingestion.chunker import Chunker, split
from knowledge_rag.ingestion.embedder import EmbeddingService, build_embedding_service
from knowledge_rag.ingestion.pipeline import IngestionPipeline

__all__ = [
    "Chunker",
    "EmbeddingService",
    "IngestionPipeline",
    "build_embedding_service",
    "split",
]
