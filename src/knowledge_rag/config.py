"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide settings, populated from ``KRAG_*`` env vars or a .env file."""

    # Index
    index_name: str = "knowledge-base"
    embedding_dimension: int = Field(default=384, gt=0, description="Dimension D of every stored vector")

    # Embedding
    embedding_backend: Literal["huggingface", "fake"] = "huggingface"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Vector store
    store_backend: Literal["memory", "chroma"] = "memory"
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_path: str = Field(
        default="",
        description=(
            "Directory for an embedded, file-backed Chroma database. "
            "Leave empty to talk to a Chroma server at chroma_host:chroma_port."
        ),
    )

    # Chunking
    chunk_size: int = 512
    chunk_overlap: int = 50
    chunk_separator: str = "\n\n"

    # Search
    default_max_results: int = 5
    default_min_score: float | None = Field(
        default=None,
        description="Score threshold applied when the caller passes none. None keeps every match.",
    )
    context_separator: str = "\n\n---\n\n"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="KRAG_", env_file=".env", env_file_encoding="utf-8")


def configure_logging(level: str | int = "INFO") -> None:
    """Install a basic root handler if the host application has not."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Read-only defaults; components receive explicit values and never mutate this.
settings = Settings()
