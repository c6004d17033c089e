"""knowledge_rag — document chunking, embedding storage and semantic search."""

from knowledge_rag.knowledge_base import KnowledgeBase, build_store

__all__ = ["KnowledgeBase", "build_store"]

__version__ = "0.1.0"
