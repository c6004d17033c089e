"""Ingestion pipeline: chunk → embed (one batch) → upsert.

Atomicity comes from ordering: every chunk is embedded before anything is
written, and the store applies the whole upsert batch or none of it.
"""

from __future__ import annotations

import logging
from typing import Any

from knowledge_rag.ingestion.chunker import Chunker
from knowledge_rag.ingestion.embedder import EmbeddingService
from knowledge_rag.retrieval.base import VectorStoreBase
from knowledge_rag.retrieval.models import Document, IngestionResult, MetadataFilter, new_document_id

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Turns raw document text into embedded chunks stored in one index.

    Parameters
    ----------
    chunker:
        Supplies chunk boundaries and the default size / overlap.
    embedder:
        Embedding service; its ``dimension`` is the index dimension.
    store:
        Destination vector store.
    index_name:
        Index written to; created on first use.
    """

    def __init__(
        self,
        chunker: Chunker,
        embedder: EmbeddingService,
        store: VectorStoreBase,
        *,
        index_name: str,
    ) -> None:
        self._chunker = chunker
        self._embedder = embedder
        self._store = store
        self.index_name = index_name

    def add_document(
        self,
        text: str,
        metadata: dict[str, Any] | None = None,
        *,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
        document_id: str | None = None,
        separator: str | None = None,
    ) -> IngestionResult:
        """Chunk, embed and store *text*.

        Passing the same *document_id* again overwrites the chunks with the
        same ids (last write wins). *separator* overrides the chunker's
        preferred boundary for this call; ``""`` disables boundary search.

        Raises
        ------
        InvalidChunkConfig
            Empty text or an unusable size / overlap pair.
        InvalidMetadata
            More caller metadata fields than a chunk may carry.
        EmbeddingServiceError
            The embedding model failed; nothing was written.
        DimensionMismatch
            The model produced vectors that do not fit the index.
        StoreWriteError
            The store rejected the batch; nothing was written.
        """
        document = Document(id=document_id or new_document_id(), text=text, metadata=dict(metadata or {}))
        chunks = self._chunker.split(
            document.text,
            size=chunk_size,
            overlap=chunk_overlap,
            separator=separator,
            document_id=document.id,
            metadata=document.metadata,
        )
        doc_id = document.id

        vectors = self._embedder.embed_many([c.text for c in chunks])
        self._store.ensure_index(self.index_name, self._embedder.dimension)
        self._store.upsert(
            self.index_name,
            ids=[c.id for c in chunks],
            vectors=vectors,
            metadata=[c.metadata.to_record(c.text) for c in chunks],
        )

        logger.info("Ingested document %s as %d chunks into %r", doc_id, len(chunks), self.index_name)
        return IngestionResult(
            document_id=doc_id,
            chunks_created=len(chunks),
            embedded=True,
            message=(
                f"Successfully processed document into {len(chunks)} chunks "
                "and stored embeddings in vector database."
            ),
        )

    def delete_document(self, document_id: str) -> None:
        """Remove every chunk stored for *document_id*."""
        self._store.delete_where(self.index_name, [MetadataFilter.equals("documentId", document_id)])
        logger.info("Deleted chunks of document %s from %r", document_id, self.index_name)
