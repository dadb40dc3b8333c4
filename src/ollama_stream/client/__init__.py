"""Caller-facing clients: async (catalog + streaming chat) and sync (catalog)."""

from ollama_stream.client.async_client import (
    AsyncClientConfig,
    AsyncOllamaStreamClient,
    build_chat_request,
)
from ollama_stream.client.sync import CatalogClientConfig, OllamaCatalogClient

__all__ = [
    "AsyncClientConfig",
    "AsyncOllamaStreamClient",
    "CatalogClientConfig",
    "OllamaCatalogClient",
    "build_chat_request",
]
