"""Wire models for the Ollama chat, listing and capability APIs.

This module defines Pydantic v2 models for every JSON document exchanged with
the inference server.

Design Principles:
    - Forward compatibility: every model ignores unknown fields (extra="ignore")
    - Exact shapes: optional fields are omitted on the wire, never sent as null
    - Tagged messages: ChatMessage is a union discriminated on ``role``
    - Immutability: requests are frozen once built

Key Models:
    - Messages: AssistantMessage, UserMessage, SystemMessage, ToolMessage
    - Tools: Tool, FunctionTool, ToolCall, FunctionCall
    - Request: ChatRequest, ChatOptions
    - Response: ChatResponseDelta (one NDJSON record)
    - Catalog: LocalModelsResponse, LocalModelListing, ModelDetails, ModelShow
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ollama_stream.domain.catalog import KEEP_ALIVE_INDEFINITE, KeepAlive

_WIRE_CONFIG = ConfigDict(extra="ignore", frozen=True)


# ============================================================================
# Tool calling
# ============================================================================


class FunctionCall(BaseModel):
    """Function invocation requested by the model.

    Attributes:
        name: Function name.
        arguments: Arguments as an opaque JSON value (usually an object).
    """

    model_config = _WIRE_CONFIG

    name: str
    arguments: Any = None


class ToolCall(BaseModel):
    """Tool call envelope.

    Attributes:
        id: Call identifier. Servers older than v0.12.10 do not send it.
        function: Function name and arguments.
    """

    model_config = _WIRE_CONFIG

    id: str | None = None
    function: FunctionCall


class FunctionTool(BaseModel):
    """Function definition exposed to the model."""

    model_config = _WIRE_CONFIG

    name: str
    description: str | None = None
    parameters: Any = None


class Tool(BaseModel):
    """Tool exposed to the model. Only ``function`` tools exist."""

    model_config = _WIRE_CONFIG

    type: Literal["function"] = "function"
    function: FunctionTool


# ============================================================================
# Chat messages (discriminated on ``role``)
# ============================================================================


class AssistantMessage(BaseModel):
    """Assistant turn, or an assistant fragment inside a streaming delta.

    Attributes:
        content: Text content (may be empty while tool calls stream).
        tool_calls: Tool calls requested by the model.
        images: Base64 encoded images.
        thinking: Reasoning text emitted by thinking-capable models.
    """

    model_config = _WIRE_CONFIG

    role: Literal["assistant"] = "assistant"
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    images: list[str] | None = None
    thinking: str | None = None


class UserMessage(BaseModel):
    """User turn with optional base64 encoded images."""

    model_config = _WIRE_CONFIG

    role: Literal["user"] = "user"
    content: str
    images: list[str] | None = None


class SystemMessage(BaseModel):
    """System instructions."""

    model_config = _WIRE_CONFIG

    role: Literal["system"] = "system"
    content: str


class ToolMessage(BaseModel):
    """Result of a tool execution sent back to the model.

    Attributes:
        tool_name: Name of the tool that produced this result.
        content: Tool output.
    """

    model_config = _WIRE_CONFIG

    role: Literal["tool"] = "tool"
    tool_name: str
    content: str


ChatMessage = Annotated[
    AssistantMessage | UserMessage | SystemMessage | ToolMessage,
    Field(discriminator="role"),
]


# ============================================================================
# Chat request / response
# ============================================================================


class ChatOptions(BaseModel):
    """Generation options (Ollama modelfile parameters).

    Attributes:
        num_ctx: Context window override in tokens.
        num_predict: Maximum tokens to generate.
        stop: Stop sequences.
        temperature: Sampling temperature.
        top_p: Nucleus sampling parameter.
    """

    model_config = _WIRE_CONFIG

    num_ctx: int | None = None
    num_predict: int | None = None
    stop: list[str] | None = None
    temperature: float | None = None
    top_p: float | None = None


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``.

    Immutable once built; transports serialize it with ``to_json_bytes``.

    Attributes:
        model: Model identifier.
        messages: Conversation in order. Order is preserved on the wire.
        stream: Whether the server should stream NDJSON deltas.
        keep_alive: How long the server keeps the model loaded.
        options: Generation options. Omitted when None.
        tools: Tools exposed to the model.
        think: Enable or disable reasoning output. Omitted when None.
    """

    model_config = _WIRE_CONFIG

    model: str
    messages: list[ChatMessage]
    stream: bool = True
    keep_alive: KeepAlive = KEEP_ALIVE_INDEFINITE
    options: ChatOptions | None = None
    tools: list[Tool] = Field(default_factory=list)
    think: bool | None = None

    def to_json_bytes(self) -> bytes:
        """Serialize to the wire body, dropping every unset optional field."""
        return self.model_dump_json(exclude_none=True).encode("utf-8")


class ChatResponseDelta(BaseModel):
    """One decoded NDJSON record of a streaming chat response.

    Attributes:
        model: Model that produced the delta.
        created_at: Server timestamp (RFC 3339 string, kept verbatim).
        message: Message fragment; callers accumulate fragments themselves.
        done_reason: Why generation stopped (final record only).
        done: True on the terminal record.
        prompt_eval_count: Prompt tokens evaluated (final record only).
        eval_count: Tokens generated (final record only).
    """

    model_config = _WIRE_CONFIG

    model: str
    created_at: str
    message: ChatMessage
    done_reason: str | None = None
    done: bool = False
    prompt_eval_count: int | None = None
    eval_count: int | None = None

    @property
    def content(self) -> str:
        return self.message.content


# ============================================================================
# Model listing and capability probe
# ============================================================================


class ModelDetails(BaseModel):
    model_config = _WIRE_CONFIG

    format: str = ""
    family: str = ""
    families: list[str] | None = None
    parameter_size: str = ""
    quantization_level: str = ""


class LocalModelListing(BaseModel):
    """One entry of ``GET /api/tags``."""

    model_config = _WIRE_CONFIG

    name: str
    modified_at: str
    size: int
    digest: str
    details: ModelDetails


class LocalModelsResponse(BaseModel):
    model_config = _WIRE_CONFIG

    models: list[LocalModelListing] = Field(default_factory=list)


def _as_context_length(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return None


class ModelShow(BaseModel):
    """Read-only view over a ``POST /api/show`` capability document.

    Only the ``capabilities`` array and two keys of the ``model_info`` map are
    kept: ``general.architecture`` and ``{architecture}.context_length``.

    Attributes:
        capabilities: Capability names (e.g., "completion", "tools", "vision").
        architecture: Model architecture name (e.g., "llama").
        context_length: Context window advertised by the server.
    """

    model_config = _WIRE_CONFIG

    capabilities: list[str] = Field(default_factory=list)
    architecture: str | None = None
    context_length: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _read_model_info(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "model_info" not in data:
            return data

        model_info = data["model_info"]
        architecture: str | None = None
        context_length: int | None = None
        if isinstance(model_info, dict):
            arch = model_info.get("general.architecture")
            if isinstance(arch, str):
                architecture = arch
                context_length = _as_context_length(
                    model_info.get(f"{architecture}.context_length")
                )

        return {
            "capabilities": data.get("capabilities") or [],
            "architecture": architecture,
            "context_length": context_length,
        }

    def supports_tools(self) -> bool:
        return "tools" in self.capabilities

    def supports_vision(self) -> bool:
        return "vision" in self.capabilities

    def supports_thinking(self) -> bool:
        return "thinking" in self.capabilities


__all__ = [
    "AssistantMessage",
    "ChatMessage",
    "ChatOptions",
    "ChatRequest",
    "ChatResponseDelta",
    "FunctionCall",
    "FunctionTool",
    "LocalModelListing",
    "LocalModelsResponse",
    "ModelDetails",
    "ModelShow",
    "SystemMessage",
    "Tool",
    "ToolCall",
    "ToolMessage",
    "UserMessage",
]
