"""
Agent — LangChain tools wrapping the knowledge base for LLM agents.
"""

from knowledge_rag.agent.tools import build_tools

__all__ = ["build_tools"]
