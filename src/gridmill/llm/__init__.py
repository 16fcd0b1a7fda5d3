"""LLM integration for in-process extraction."""

from gridmill.llm.client import LLMClient, StructuredCompletion, get_client, resolve_api_key

__all__ = ["LLMClient", "StructuredCompletion", "get_client", "resolve_api_key"]
