"""Domain layer: model catalog, wire models and error taxonomy."""

from ollama_stream.domain.catalog import (
    DEFAULT_TOKENS,
    KEEP_ALIVE_INDEFINITE,
    MAXIMUM_TOKENS,
    KeepAlive,
    Model,
    get_max_tokens,
    model_from_show,
    resolve_model,
)
from ollama_stream.domain.exceptions import (
    ChannelClosedError,
    DecodeError,
    HttpStatusError,
    OllamaStreamError,
    ProtocolFramingError,
    StreamConnectionError,
)
from ollama_stream.domain.messages import (
    AssistantMessage,
    ChatMessage,
    ChatOptions,
    ChatRequest,
    ChatResponseDelta,
    FunctionCall,
    FunctionTool,
    LocalModelListing,
    LocalModelsResponse,
    ModelDetails,
    ModelShow,
    SystemMessage,
    Tool,
    ToolCall,
    ToolMessage,
    UserMessage,
)

__all__ = [
    "DEFAULT_TOKENS",
    "KEEP_ALIVE_INDEFINITE",
    "MAXIMUM_TOKENS",
    "AssistantMessage",
    "ChannelClosedError",
    "ChatMessage",
    "ChatOptions",
    "ChatRequest",
    "ChatResponseDelta",
    "DecodeError",
    "FunctionCall",
    "FunctionTool",
    "HttpStatusError",
    "KeepAlive",
    "LocalModelListing",
    "LocalModelsResponse",
    "Model",
    "ModelDetails",
    "ModelShow",
    "OllamaStreamError",
    "ProtocolFramingError",
    "StreamConnectionError",
    "SystemMessage",
    "Tool",
    "ToolCall",
    "ToolMessage",
    "UserMessage",
    "get_max_tokens",
    "model_from_show",
    "resolve_model",
]
