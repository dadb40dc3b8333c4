"""Streaming chat client for Ollama - raw socket and httpx transports."""

from ollama_stream.client import (
    AsyncClientConfig,
    AsyncOllamaStreamClient,
    CatalogClientConfig,
    OllamaCatalogClient,
    build_chat_request,
)
from ollama_stream.core import Settings, settings
from ollama_stream.domain import (
    AssistantMessage,
    ChannelClosedError,
    ChatOptions,
    ChatRequest,
    ChatResponseDelta,
    DecodeError,
    HttpStatusError,
    Model,
    ModelShow,
    OllamaStreamError,
    ProtocolFramingError,
    StreamConnectionError,
    SystemMessage,
    Tool,
    ToolCall,
    ToolMessage,
    UserMessage,
    resolve_model,
)
from ollama_stream.streaming.chat_stream import ChatStream
from ollama_stream.telemetry import MetricsCollector, configure_request_log
from ollama_stream.transport import TransportKind, select_transport

__all__ = [
    "AssistantMessage",
    "AsyncClientConfig",
    "AsyncOllamaStreamClient",
    "CatalogClientConfig",
    "ChannelClosedError",
    "ChatOptions",
    "ChatRequest",
    "ChatResponseDelta",
    "ChatStream",
    "DecodeError",
    "HttpStatusError",
    "MetricsCollector",
    "Model",
    "ModelShow",
    "OllamaCatalogClient",
    "OllamaStreamError",
    "ProtocolFramingError",
    "Settings",
    "StreamConnectionError",
    "SystemMessage",
    "Tool",
    "ToolCall",
    "ToolMessage",
    "TransportKind",
    "UserMessage",
    "build_chat_request",
    "configure_request_log",
    "resolve_model",
    "select_transport",
    "settings",
]
