"""Structured request events for the Ollama streaming client.

Events are JSON objects written one per line (JSON Lines) to the
non-propagating ``ollama_stream.requests`` logger. The library does not own
the sink: by default the logger has a NullHandler, and applications attach a
file with ``configure_request_log`` or add their own handler.

Event Schema:
    All events should include:
        - event: Event type identifier (e.g., "ollama_request")
        - operation: Operation name ("chat_stream", "list_models", ...)
        - status: "success", "error" or "cancelled"
        - timestamp: ISO 8601 timestamp (auto-injected if missing)
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

REQUEST_LOGGER = logging.getLogger("ollama_stream.requests")
REQUEST_LOGGER.propagate = False
if not REQUEST_LOGGER.handlers:
    REQUEST_LOGGER.addHandler(logging.NullHandler())

_DATETIME_ADAPTER = TypeAdapter(datetime)


def configure_request_log(path: str | Path, level: int = logging.INFO) -> logging.Handler:
    """Write request events to *path* as JSON Lines.

    Creates parent directories as needed and replaces any handler installed by
    a previous call.

    Args:
        path: Target file (e.g., ``logs/requests.jsonl``).
        level: Minimum level for the request logger.

    Returns:
        The installed handler, so callers can remove or close it.
    """
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for existing in list(REQUEST_LOGGER.handlers):
        REQUEST_LOGGER.removeHandler(existing)
        existing.close()

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    REQUEST_LOGGER.addHandler(handler)
    REQUEST_LOGGER.setLevel(level)
    return handler


def _json_default(value: Any) -> Any:
    """Fallback serializer for datetime and Path objects."""
    match value:
        case datetime():
            return _DATETIME_ADAPTER.dump_python(value, mode="json")
        case Path():
            return str(value)
        case _:
            return str(value)


def log_request_event(event: dict[str, Any]) -> None:
    """Emit a structured request event.

    Injects ``timestamp`` when missing (mutates *event*).

    Example:
        >>> log_request_event({
        ...     "event": "ollama_request",
        ...     "operation": "chat_stream",
        ...     "status": "success",
        ...     "model": "llama3.2",
        ...     "latency_ms": 1234.56,
        ... })
    """
    event.setdefault("timestamp", datetime.now(UTC).isoformat())
    REQUEST_LOGGER.info(json.dumps(event, default=_json_default))


__all__ = ["REQUEST_LOGGER", "configure_request_log", "log_request_event"]
