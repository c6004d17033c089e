"""Unit tests for the chunker module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from knowledge_rag.errors import InvalidChunkConfig, InvalidMetadata
from knowledge_rag.ingestion.chunker import Chunker, split, window_bounds
from knowledge_rag.retrieval.models import MAX_EXTRA_FIELDS, ChunkMetadata


def _reassemble(texts: list[str], overlap: int) -> str:
    return texts[0] + "".join(t[overlap:] for t in texts[1:])


def test_short_text_is_a_single_chunk() -> None:
    text = "Short text."
    chunks = split(text, 256, 32, document_id="doc-1")
    assert len(chunks) == 1
    assert chunks[0].text == text


def test_text_exactly_chunk_size_is_a_single_chunk() -> None:
    text = "x" * 64
    assert [c.text for c in split(text, 64, 8)] == [text]


def test_long_text_is_split() -> None:
    long_text = "word " * 500  # ~2500 chars
    chunks = split(long_text, 256, 32)
    assert len(chunks) > 1
    assert all(len(c.text) <= 256 for c in chunks)


def test_sliding_window_shares_exact_overlap() -> None:
    text = "abcdefghij" * 30
    chunks = split(text, 64, 16)
    texts = [c.text for c in chunks]
    for left, right in zip(texts, texts[1:]):
        assert left[-16:] == right[:16]
    assert _reassemble(texts, 16) == text


def test_final_chunk_may_be_shorter() -> None:
    chunks = split("y" * 100, 40, 10)
    assert [len(c.text) for c in chunks] == [40, 40, 40]
    chunks = split("y" * 105, 40, 10)
    assert len(chunks[-1].text) <= 40
    assert chunks[-1].text.endswith("y")


def test_separator_boundaries_are_preferred() -> None:
    paragraph = "a" * 38 + "\n\n"
    text = paragraph * 10
    chunks = split(text, 100, 10, "\n\n")
    texts = [c.text for c in chunks]
    assert len(texts) > 1
    assert all(t.endswith("\n\n") for t in texts[:-1])
    for left, right in zip(texts, texts[1:]):
        assert left[-10:] == right[:10]
    assert _reassemble(texts, 10) == text


def test_separator_missing_falls_back_to_fixed_window() -> None:
    text = "z" * 300
    assert window_bounds(text, 64, 8, "\n\n") == window_bounds(text, 64, 8)


def test_chunking_is_deterministic() -> None:
    text = ("Kubeflow pipelines.\n\nKServe serving. " * 40).strip()
    first = [(c.start, c.text) for c in split(text, 120, 20, "\n\n", document_id="d")]
    second = [(c.start, c.text) for c in split(text, 120, 20, "\n\n", document_id="d")]
    assert first == second


def test_chunk_ids_follow_document_id() -> None:
    chunks = split("q" * 300, 100, 10, document_id="doc-42")
    assert [c.id for c in chunks] == [f"doc-42-chunk-{i}" for i in range(len(chunks))]
    assert len({c.id for c in chunks}) == len(chunks)


def test_document_id_generated_when_missing() -> None:
    chunks = split("text", 10, 2)
    assert chunks[0].document_id.startswith("doc-")
    assert chunks[0].id == f"{chunks[0].document_id}-chunk-0"


def test_metadata_is_inherited() -> None:
    chunks = split("m" * 50, 20, 5, metadata={"source": "test.md", "author": "alice"})
    assert all(c.metadata.source == "test.md" for c in chunks)
    assert all(c.metadata.extra == {"author": "alice"} for c in chunks)
    assert [c.metadata.chunk_index for c in chunks] == list(range(len(chunks)))
    assert len({c.metadata.added_at for c in chunks}) == 1


def test_record_flattens_core_and_extra_fields() -> None:
    chunk = split("hello", 10, 2, document_id="d1", metadata={"source": "s.md", "lang": "en"})[0]
    record = chunk.metadata.to_record(chunk.text)
    assert record["text"] == "hello"
    assert record["documentId"] == "d1"
    assert record["chunkIndex"] == 0
    assert record["source"] == "s.md"
    assert record["lang"] == "en"
    assert "addedAt" in record


def test_too_many_metadata_fields_rejected() -> None:
    metadata = {f"k{i}": i for i in range(MAX_EXTRA_FIELDS + 1)}
    with pytest.raises(InvalidMetadata):
        split("text", 10, 2, metadata=metadata)


def test_source_does_not_count_against_metadata_limit() -> None:
    metadata = {f"k{i}": i for i in range(MAX_EXTRA_FIELDS)}
    metadata["source"] = "s.md"
    assert split("text", 10, 2, metadata=metadata)[0].metadata.source == "s.md"


def test_metadata_model_still_bounds_extra_fields() -> None:
    with pytest.raises(ValidationError):
        ChunkMetadata(document_id="d", extra={f"k{i}": i for i in range(MAX_EXTRA_FIELDS + 1)})


@pytest.mark.parametrize(
    ("size", "overlap"),
    [(10, 10), (10, 20), (0, 0), (-5, 0), (10, -1)],
)
def test_invalid_config_rejected(size: int, overlap: int) -> None:
    with pytest.raises(InvalidChunkConfig):
        split("some text", size, overlap)


def test_empty_text_rejected() -> None:
    with pytest.raises(InvalidChunkConfig):
        split("", 512, 50)


class TestChunker:
    def test_uses_defaults(self) -> None:
        chunker = Chunker(size=50, overlap=5, separator=None)
        chunks = chunker.split("w" * 120)
        assert all(len(c.text) <= 50 for c in chunks)

    def test_overrides_per_call(self) -> None:
        chunker = Chunker(size=50, overlap=5, separator=None)
        assert len(chunker.split("w" * 120, size=200, overlap=0)) == 1

    def test_invalid_defaults_rejected(self) -> None:
        with pytest.raises(InvalidChunkConfig):
            Chunker(size=10, overlap=10)

    def test_separator_overridden_per_call(self) -> None:
        text = "aaaa|bbbb|cccc|dddd|eeee"
        chunker = Chunker(size=12, overlap=2, separator=None)
        plain = [c.text for c in chunker.split(text)]
        piped = [c.text for c in chunker.split(text, separator="|")]
        assert plain[0] == text[:12]
        assert piped[0] == "aaaa|bbbb|"
        assert piped != plain

    def test_empty_separator_disables_boundaries(self) -> None:
        text = "aaaa|bbbb|cccc|dddd|eeee"
        chunker = Chunker(size=12, overlap=2, separator="|")
        assert chunker.split(text)[0].text == "aaaa|bbbb|"
        assert chunker.split(text, separator="")[0].text == text[:12]
