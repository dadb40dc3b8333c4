"""Transport protocols shared by the raw socket and HTTP client paths.

A transport sends one serialized chat request and hands back a ByteSource:
an async reader over the response body. Both implementations push body bytes
through a ByteChannel filled by their own reader context (thread or task), so
the event loop never blocks on network reads.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ollama_stream.streaming.channel import ByteChannel


@runtime_checkable
class ByteSource(Protocol):
    """Readable response body.

    ``read`` returns the next chunk in arrival order, ``b""`` at end of body,
    or raises the transport error that ended the body. ``aclose`` releases
    the connection and must be safe to call more than once.
    """

    async def read(self) -> bytes: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class Transport(Protocol):
    """Strategy that opens a streaming ``POST /api/chat``."""

    async def open(self, endpoint: str, credential: str | None, body: bytes) -> ByteSource:
        """Connect, send *body* and return a reader positioned at the body start.

        Raises:
            StreamConnectionError: Connection could not be established.
            ProtocolFramingError: Response headers could not be located.
            HttpStatusError: Server answered with a non-success status.
        """
        ...


class ChannelByteSource:
    """ByteSource that drains a ByteChannel and runs a teardown hook once."""

    __slots__ = ("_channel", "_closed", "_on_close")

    def __init__(self, channel: ByteChannel, on_close: Callable[[], object]) -> None:
        self._channel = channel
        self._on_close = on_close
        self._closed = False

    @property
    def channel(self) -> ByteChannel:
        return self._channel

    async def read(self) -> bytes:
        return await self._channel.receive()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._channel.close()
        self._on_close()


__all__ = ["ByteSource", "ChannelByteSource", "Transport"]
