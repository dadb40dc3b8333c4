"""Model catalog: model metadata and context-window heuristics.

This module resolves a model name (plus optional overrides) into a Model
record. It performs no I/O; capability information obtained from the server
is passed in by the caller (see ``model_from_show``).

Context window resolution:
    - An explicit ``max_tokens`` wins over the family table
    - Otherwise the family prefix (text before the first ``:``) is looked up
      in FAMILY_CONTEXT_TOKENS; unknown families get DEFAULT_TOKENS
    - The result is always clamped to [1, MAXIMUM_TOKENS], including values
      advertised by the server, to bound downstream memory use
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from ollama_stream.domain.messages import ModelShow

KeepAlive: TypeAlias = int | str
"""Seconds as an int (-1 keeps the model loaded forever) or a duration like "5m"."""

KEEP_ALIVE_INDEFINITE: KeepAlive = -1

DEFAULT_TOKENS = 4096
"""Context length for model families missing from the table."""

MAXIMUM_TOKENS = 16384
"""Ceiling applied to every resolved context window (~16GB of RAM for most models)."""

_FAMILY_GROUPS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (2048, ("granite-code", "phi", "tinyllama")),
    (4096, ("llama2", "stablelm2", "vicuna", "yi")),
    (8192, ("aya", "codegemma", "gemma", "gemma2", "llama3", "starcoder")),
    (16384, ("codellama", "starcoder2")),
    (
        32768,
        (
            "codestral",
            "dolphin-mixtral",
            "llava",
            "magistral",
            "mistral",
            "mixstral",
            "qwen2",
            "qwen2.5-coder",
        ),
    ),
    (
        128000,
        (
            "cogito",
            "command-r",
            "deepseek-coder-v2",
            "deepseek-r1",
            "deepseek-v3",
            "devstral",
            "gemma3",
            "gpt-oss",
            "granite3.3",
            "llama3.1",
            "llama3.2",
            "llama3.3",
            "mistral-nemo",
            "phi3",
            "phi3.5",
            "phi4",
            "qwen3",
            "yi-coder",
        ),
    ),
    (256000, ("qwen3-coder",)),
)

FAMILY_CONTEXT_TOKENS: dict[str, int] = {
    family: tokens for tokens, families in _FAMILY_GROUPS for family in families
}


def _clamp_tokens(tokens: int) -> int:
    return max(1, min(tokens, MAXIMUM_TOKENS))


def family_of(name: str) -> str:
    """Return the family prefix of a model name ("llama3.2:3b" -> "llama3.2")."""
    return name.split(":", 1)[0]


def get_max_tokens(name: str) -> int:
    """Look up the context window for *name* from the family table (clamped)."""
    return _clamp_tokens(FAMILY_CONTEXT_TOKENS.get(family_of(name), DEFAULT_TOKENS))


@dataclass(slots=True, frozen=True)
class Model:
    """A selectable model and its resource/capability envelope.

    Attributes:
        name: Ollama model identifier (e.g., "llama3.2:latest").
        display_name: Human-facing name. None means use ``name``.
        max_tokens: Context window in tokens, already clamped.
        keep_alive: How long the server keeps the model loaded after a request.
        supports_tools: Tool calling capability. None if unknown.
        supports_vision: Image input capability. None if unknown.
        supports_thinking: Reasoning ("think") capability. None if unknown.
    """

    name: str
    display_name: str | None
    max_tokens: int
    keep_alive: KeepAlive = KEEP_ALIVE_INDEFINITE
    supports_tools: bool | None = None
    supports_vision: bool | None = None
    supports_thinking: bool | None = None

    @property
    def id(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        """Name to show to users."""
        return self.display_name or self.name

    @property
    def max_token_count(self) -> int:
        return self.max_tokens


def resolve_model(
    name: str,
    *,
    display_name: str | None = None,
    max_tokens: int | None = None,
    keep_alive: KeepAlive | None = None,
    supports_tools: bool | None = None,
    supports_vision: bool | None = None,
    supports_thinking: bool | None = None,
) -> Model:
    """Build a Model from a name and optional overrides.

    Args:
        name: Ollama model identifier.
        display_name: Explicit display name. Defaults to ``name`` with a
            trailing ":latest" removed (None when nothing was removed).
        max_tokens: Explicit context window. Defaults to the family table.
            Clamped to [1, MAXIMUM_TOKENS] either way.
        keep_alive: Keep-alive policy. Defaults to indefinite.
        supports_tools: Tool calling capability flag.
        supports_vision: Vision capability flag.
        supports_thinking: Thinking capability flag.

    Returns:
        Resolved, immutable Model.
    """
    if display_name is None and name.endswith(":latest"):
        display_name = name.removesuffix(":latest")

    tokens = get_max_tokens(name) if max_tokens is None else _clamp_tokens(max_tokens)

    return Model(
        name=name,
        display_name=display_name,
        max_tokens=tokens,
        keep_alive=KEEP_ALIVE_INDEFINITE if keep_alive is None else keep_alive,
        supports_tools=supports_tools,
        supports_vision=supports_vision,
        supports_thinking=supports_thinking,
    )


def model_from_show(name: str, show: ModelShow, keep_alive: KeepAlive | None = None) -> Model:
    """Resolve a model using a capability probe result from ``/api/show``."""
    return resolve_model(
        name,
        max_tokens=show.context_length,
        keep_alive=keep_alive,
        supports_tools=show.supports_tools(),
        supports_vision=show.supports_vision(),
        supports_thinking=show.supports_thinking(),
    )


__all__ = [
    "DEFAULT_TOKENS",
    "FAMILY_CONTEXT_TOKENS",
    "KEEP_ALIVE_INDEFINITE",
    "MAXIMUM_TOKENS",
    "KeepAlive",
    "Model",
    "family_of",
    "get_max_tokens",
    "model_from_show",
    "resolve_model",
]
