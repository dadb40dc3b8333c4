"""Error taxonomy for the Ollama streaming client.

Exception Hierarchy:
    - OllamaStreamError: Base exception for all client errors
    - StreamConnectionError: Transport cannot be established or dropped
    - ProtocolFramingError: HTTP header/body boundary not found
    - HttpStatusError: Non-success HTTP status, response body captured
    - DecodeError: One NDJSON line failed to decode (recovered locally)
    - ChannelClosedError: Reader hand-off ended unexpectedly or was closed

Only DecodeError is recovered inside the stream; every other kind ends the
delta sequence and reaches the caller.
"""

from __future__ import annotations


class OllamaStreamError(Exception):
    """Base exception for all streaming client errors."""


class StreamConnectionError(OllamaStreamError, ConnectionError):
    """Raised when a transport cannot connect or loses its connection.

    Subclasses the builtin ConnectionError so callers that already catch
    ConnectionError around Ollama calls keep working.
    """


class ProtocolFramingError(OllamaStreamError):
    """Raised when the raw socket path cannot locate the response body.

    The raw transport only understands enough HTTP to find the blank line
    separating headers from body. This error means the peer closed the
    connection, or sent an oversized header block, before that separator.
    """


class HttpStatusError(OllamaStreamError):
    """Raised when the server answers with a non-success status code.

    Attributes:
        status_code: HTTP status code returned by the server.
        body: Full response body decoded as text.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to connect to Ollama API: {status_code} {body}")


class DecodeError(OllamaStreamError, ValueError):
    """Raised when a single framed line is not a valid response delta.

    Attributes:
        line: The offending line, as received.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        super().__init__(f"{reason} (line: {line[:100]}...)")


class ChannelClosedError(OllamaStreamError):
    """Raised when the reader hand-off channel is closed or abandoned."""


__all__ = [
    "ChannelClosedError",
    "DecodeError",
    "HttpStatusError",
    "OllamaStreamError",
    "ProtocolFramingError",
    "StreamConnectionError",
]
