"""Low-latency transport for a same-host Ollama server.

Speaks just enough HTTP/1.1 to send one request and locate the response body:
the request line and headers are written by hand, and response headers are
discarded up to the first blank line. Status codes are not inspected. The
body is forwarded verbatim, so with a chunked response the chunk-size lines
reach the line framer, which filters them.

Threading:
    Connect, send and the header read run in a worker thread via
    ``asyncio.to_thread``. Body reads run on a dedicated daemon thread that
    pushes into a bounded ByteChannel. Teardown shuts the socket down, which
    unblocks a pending ``recv``; the thread is never joined.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from contextlib import suppress

import httpx

from ollama_stream.core.config import StreamConfig
from ollama_stream.domain.exceptions import (
    ChannelClosedError,
    ProtocolFramingError,
    StreamConnectionError,
)
from ollama_stream.streaming.channel import ByteChannel
from ollama_stream.transport.base import ByteSource, ChannelByteSource

logger = logging.getLogger(__name__)

DEFAULT_PORT = 11434
HEADER_TERMINATOR = b"\r\n\r\n"
READER_THREAD_NAME = "ollama-stream-reader"


def build_request_head(host: str, port: int, content_length: int) -> bytes:
    """Serialize the request line and headers for ``POST /api/chat``."""
    if ":" in host:
        host = f"[{host}]"
    return (
        "POST /api/chat HTTP/1.1\r\n"
        f"Host: {host}:{port}\r\n"
        "Content-Type: application/json\r\n"
        f"Content-Length: {content_length}\r\n"
        "Connection: close\r\n"
        "\r\n"
    ).encode("ascii")


def read_response_head(sock: socket.socket, chunk_size: int, max_bytes: int) -> bytes:
    """Consume response headers from *sock*.

    Returns:
        Body bytes that arrived in the same reads as the headers.

    Raises:
        ProtocolFramingError: Peer closed before the blank line, or the header
            block grew past *max_bytes*.
    """
    buffer = bytearray()
    while True:
        chunk = sock.recv(chunk_size)
        if not chunk:
            raise ProtocolFramingError("Connection closed before headers")
        buffer.extend(chunk)

        header_end = buffer.find(HEADER_TERMINATOR)
        if header_end != -1:
            return bytes(buffer[header_end + len(HEADER_TERMINATOR) :])
        if len(buffer) > max_bytes:
            msg = f"Response headers exceed {max_bytes} bytes"
            raise ProtocolFramingError(msg)


class RawSocketTransport:
    """Transport that writes HTTP by hand over a plain TCP socket."""

    __slots__ = ("config",)

    def __init__(self, config: StreamConfig | None = None) -> None:
        self.config = config or StreamConfig()

    async def open(self, endpoint: str, credential: str | None, body: bytes) -> ByteSource:
        """Connect to *endpoint* and start streaming the response body.

        *credential* is accepted for interface parity; the raw path is only
        selected when there is none, and never sends authorization.
        """
        if credential:
            logger.warning("Raw socket transport ignores credentials; use the HTTP client path")

        url = httpx.URL(endpoint)
        host = url.host or "localhost"
        port = url.port or DEFAULT_PORT

        handshake = asyncio.ensure_future(asyncio.to_thread(self._handshake, host, port, body))
        try:
            sock, leftover = await asyncio.shield(handshake)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; close its socket when it returns.
            handshake.add_done_callback(_discard_handshake)
            raise

        channel = ByteChannel(
            self.config.channel_max_chunks,
            poll_interval=self.config.send_poll_interval,
        )
        reader = threading.Thread(
            target=self._pump,
            args=(sock, channel, leftover),
            name=READER_THREAD_NAME,
            daemon=True,
        )
        reader.start()
        logger.debug("Raw socket stream opened to %s:%s", host, port)

        return ChannelByteSource(channel, lambda: _shutdown(sock))

    def _handshake(self, host: str, port: int, body: bytes) -> tuple[socket.socket, bytes]:
        try:
            sock = socket.create_connection((host, port), timeout=self.config.connect_timeout)
        except OSError as exc:
            msg = f"Failed to connect to {host}:{port}: {exc}"
            raise StreamConnectionError(msg) from exc

        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.sendall(build_request_head(host, port, len(body)) + body)
            leftover = read_response_head(
                sock, self.config.read_chunk_size, self.config.header_max_bytes
            )
            # Body reads block until data arrives or the socket is shut down.
            sock.settimeout(None)
        except ProtocolFramingError:
            _shutdown(sock)
            raise
        except OSError as exc:
            _shutdown(sock)
            msg = f"Failed to send chat request to {host}:{port}: {exc}"
            raise StreamConnectionError(msg) from exc

        return sock, leftover

    def _pump(self, sock: socket.socket, channel: ByteChannel, leftover: bytes) -> None:
        error: BaseException | None = None
        try:
            if leftover and not channel.send_threadsafe(leftover):
                return
            while True:
                chunk = sock.recv(self.config.read_chunk_size)
                if not chunk:
                    break
                if not channel.send_threadsafe(chunk):
                    return
        except OSError as exc:
            if channel.closed:
                return
            logger.debug("Raw socket read failed: %s", exc)
            error = StreamConnectionError(f"Connection lost while streaming: {exc}")
        except Exception as exc:
            logger.exception("Unexpected error in raw socket reader")
            error = ChannelClosedError(f"Reader stopped unexpectedly: {exc}")
        finally:
            channel.finish_threadsafe(error)


def _shutdown(sock: socket.socket) -> None:
    with suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)
    with suppress(OSError):
        sock.close()


def _discard_handshake(handshake: asyncio.Future[tuple[socket.socket, bytes]]) -> None:
    if handshake.cancelled() or handshake.exception() is not None:
        return
    sock, _ = handshake.result()
    _shutdown(sock)
    logger.debug("Closed raw socket opened after cancellation")


__all__ = [
    "DEFAULT_PORT",
    "READER_THREAD_NAME",
    "RawSocketTransport",
    "build_request_head",
    "read_response_head",
]
