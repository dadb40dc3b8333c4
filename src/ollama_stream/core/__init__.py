"""Core helpers for the Ollama streaming client."""

from ollama_stream.core.config import (
    OLLAMA_API_URL,
    ClientConfig,
    OllamaConfig,
    Settings,
    StreamConfig,
    settings,
)

__all__ = [
    "OLLAMA_API_URL",
    "ClientConfig",
    "OllamaConfig",
    "Settings",
    "StreamConfig",
    "settings",
]
