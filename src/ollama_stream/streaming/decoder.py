"""Decode one framed NDJSON line into a ChatResponseDelta."""

from __future__ import annotations

from pydantic import ValidationError

from ollama_stream.domain.exceptions import DecodeError
from ollama_stream.domain.messages import ChatResponseDelta


def decode_delta(line: str) -> ChatResponseDelta:
    """Parse *line* as a streaming chat record.

    Raises:
        DecodeError: The line is not JSON, or not a valid delta shape.
    """
    try:
        return ChatResponseDelta.model_validate_json(line)
    except ValidationError as exc:
        reason = f"Invalid chat delta ({exc.error_count()} error(s)): {exc.errors()[0]['msg']}"
        raise DecodeError(line, reason) from exc


__all__ = ["decode_delta"]
