"""Domain models for documents, chunks, index entries and search responses."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_EXTRA_FIELDS = 32
"""Upper bound on caller-supplied metadata keys carried by a chunk."""

NO_CONTENT = "No content available"


def new_document_id() -> str:
    """Return a collision-resistant document id (``doc-<uuid4 hex>``)."""
    return f"doc-{uuid4().hex}"


def chunk_id(document_id: str, index: int) -> str:
    return f"{document_id}-chunk-{index}"


class _CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase with ``by_alias=True``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"source"``, ``"documentId"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: Literal["eq", "ne", "gt", "gte", "lt", "lte", "in", "nin"] = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


FilterSpec = list[MetadataFilter] | dict[str, Any] | None


def coerce_filters(filters: FilterSpec) -> list[MetadataFilter]:
    """Normalise a filter argument; a plain dict means "every key equals its value"."""
    if not filters:
        return []
    if isinstance(filters, dict):
        return [MetadataFilter.equals(key, value) for key, value in filters.items()]
    return list(filters)


class ChunkMetadata(BaseModel):
    """Typed metadata core plus a bounded map of uninterpreted caller fields."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    source: str = "unknown"
    chunk_index: int = 0
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("extra")
    @classmethod
    def _bounded(cls, value: dict[str, Any]) -> dict[str, Any]:
        if len(value) > MAX_EXTRA_FIELDS:
            raise ValueError(f"at most {MAX_EXTRA_FIELDS} extra metadata fields allowed, got {len(value)}")
        return value

    def to_record(self, text: str) -> dict[str, Any]:
        """Flatten into the metadata map stored next to the vector."""
        return {
            **self.extra,
            "text": text,
            "documentId": self.document_id,
            "source": self.source,
            "chunkIndex": self.chunk_index,
            "addedAt": self.added_at.isoformat(),
        }


class Document(BaseModel):
    """Raw text handed to the ingestion pipeline; one per ingestion call."""

    id: str = Field(default_factory=new_document_id)
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """Contiguous slice of a document; the unit of embedding and retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    index: int
    text: str
    start: int
    metadata: ChunkMetadata


class IndexSpec(BaseModel):
    name: str
    dimension: int = Field(gt=0)
    metric: Literal["cosine"] = "cosine"


class IndexEntry(BaseModel):
    """One stored vector; replaced wholesale on re-upsert."""

    model_config = ConfigDict(frozen=True)

    id: str
    vector: tuple[float, ...]
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A scored hit returned by a vector store (cosine range [-1, 1])."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def content(self) -> str:
        text = self.metadata.get("text")
        return text if isinstance(text, str) and text else NO_CONTENT

    def to_source(self) -> Source:
        return Source(id=self.id, content=self.content, score=self.score, metadata=self.metadata)


class Source(_CamelModel):
    id: str
    content: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(_CamelModel):
    """Outcome of a search. Always one of :class:`SearchOk` or :class:`SearchDegraded`."""

    relevant_context: str
    sources: list[Source] = Field(default_factory=list)
    total_found: int = 0
    search_performed: bool


class SearchOk(SearchResponse):
    status: Literal["ok"] = "ok"
    search_performed: bool = True


class SearchDegraded(SearchResponse):
    """Retrieval failed; ``sources`` holds one flagged fallback entry."""

    status: Literal["degraded"] = "degraded"
    search_performed: bool = False
    error: str


class IngestionResult(_CamelModel):
    document_id: str
    chunks_created: int
    embedded: bool
    message: str

    @classmethod
    def failed(cls, exc: BaseException) -> IngestionResult:
        """Report an ingestion error in the shape outer layers return to users."""
        return cls(
            document_id="error",
            chunks_created=0,
            embedded=False,
            message=f"Error processing document: {exc}",
        )
