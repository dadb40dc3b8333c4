"""Cancellable async sequence of chat deltas.

ChatStream ties the pieces together for one request:

    transport.open -> ByteSource.read -> LineFramer -> decode_delta -> caller

Key behaviors:
    - Lazy: nothing is sent until the first ``__anext__``
    - Malformed lines are logged at DEBUG and skipped
    - A ``done: true`` delta is delivered, then the transport is torn down and
      no further reads happen
    - End of body flushes the framer and ends the sequence
    - Connection, framing and status errors tear down and propagate
    - ``aclose``/``cancel`` (or cancelling the consuming task) tear down; a
      consumer blocked in ``__anext__`` wakes with StopAsyncIteration
    - Stopping while the transport is still opening interrupts the open
    - Not restartable: once finished, iteration stays exhausted

Every stream that was opened records exactly one MetricsCollector entry and
one structured request event, whichever way it ends.

Example:
    >>> async with ChatStream(endpoint, None, request) as stream:
    ...     async for delta in stream:
    ...         print(delta.content, end="")
"""

from __future__ import annotations

import asyncio
import logging
import time
import types
import uuid
from collections import deque
from typing import Any

import httpx

from ollama_stream.core.config import StreamConfig
from ollama_stream.domain.exceptions import ChannelClosedError, DecodeError
from ollama_stream.domain.messages import ChatRequest, ChatResponseDelta
from ollama_stream.streaming.decoder import decode_delta
from ollama_stream.streaming.framer import LineFramer
from ollama_stream.telemetry.metrics import MetricsCollector
from ollama_stream.telemetry.structured_logging import log_request_event
from ollama_stream.transport.base import ByteSource, Transport
from ollama_stream.transport.selector import TransportKind, build_transport, select_transport

logger = logging.getLogger(__name__)


class ChatStream:
    """Async iterator of ChatResponseDelta for one ``POST /api/chat``.

    Attributes:
        endpoint: Server base URL.
        request: The immutable request being streamed.
        request_id: Identifier attached to telemetry for this stream.
        transport_kind: Selected strategy, or None for an injected transport.
    """

    __slots__ = (
        "_cancelled",
        "_closing",
        "_config",
        "_credential",
        "_deltas",
        "_done_reason",
        "_eof",
        "_finished",
        "_first_delta_ms",
        "_framer",
        "_opening",
        "_owned_client",
        "_pending",
        "_skipped",
        "_source",
        "_started_at",
        "_transport",
        "endpoint",
        "request",
        "request_id",
        "transport_kind",
    )

    def __init__(
        self,
        endpoint: str,
        credential: str | None,
        request: ChatRequest,
        *,
        http_client: httpx.AsyncClient | None = None,
        transport: Transport | None = None,
        config: StreamConfig | None = None,
    ) -> None:
        """Prepare a stream. No I/O happens here.

        Args:
            endpoint: Server base URL (e.g., "http://localhost:11434").
            credential: Bearer credential, or None.
            request: Chat request to send.
            http_client: Shared httpx client for the HTTP path. When the HTTP
                path is selected without one, the stream creates and closes
                its own.
            transport: Explicit transport, bypassing selection.
            config: Streaming settings. Defaults to StreamConfig().
        """
        self.endpoint = endpoint.rstrip("/")
        self.request = request
        self.request_id = str(uuid.uuid4())
        self._credential = credential
        self._config = config or StreamConfig()
        self._owned_client: httpx.AsyncClient | None = None

        if transport is not None:
            self.transport_kind: TransportKind | None = None
            self._transport: Transport | None = transport
        else:
            self.transport_kind = select_transport(self.endpoint, credential)
            if self.transport_kind is TransportKind.HTTP_CLIENT and http_client is None:
                # Built on first use in _open so an unused stream holds no client.
                self._transport = None
            else:
                self._transport = build_transport(self.transport_kind, http_client, self._config)

        self._framer = LineFramer()
        self._pending: deque[str] = deque()
        self._source: ByteSource | None = None
        self._opening: asyncio.Task[ByteSource] | None = None
        self._closing: asyncio.Task[None] | None = None
        self._started_at: float | None = None
        self._first_delta_ms: float | None = None
        self._done_reason: str | None = None
        self._deltas = 0
        self._skipped = 0
        self._eof = False
        self._cancelled = False
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def skipped_lines(self) -> int:
        """Number of framed lines dropped because they failed to decode."""
        return self._skipped

    def __aiter__(self) -> ChatStream:
        return self

    async def __anext__(self) -> ChatResponseDelta:
        if self._finished:
            raise StopAsyncIteration
        if self._cancelled:
            await self._teardown("cancelled")
            raise StopAsyncIteration

        try:
            delta = await self._next_delta()
        except asyncio.CancelledError:
            await self._teardown("cancelled")
            raise
        except ChannelClosedError as exc:
            if self._cancelled:
                await self._teardown("cancelled")
                raise StopAsyncIteration from None
            await self._teardown("error", exc)
            raise
        except Exception as exc:
            await self._teardown("error", exc)
            raise

        if delta is None:
            await self._teardown("cancelled" if self._cancelled else "success")
            raise StopAsyncIteration

        self._deltas += 1
        if self._first_delta_ms is None and self._started_at is not None:
            self._first_delta_ms = (time.perf_counter() - self._started_at) * 1000
        if delta.done:
            self._done_reason = delta.done_reason
            await self._teardown("success")
        return delta

    async def _open(self) -> ByteSource | None:
        """Open the transport in a task that ``cancel``/``aclose`` can interrupt.

        Returns None when the stream was stopped while opening; a source that
        arrives after that is closed here.
        """
        self._started_at = time.perf_counter()
        body = self.request.to_json_bytes()
        logger.debug(
            "Opening chat stream %s for %s via %s",
            self.request_id,
            self.request.model,
            self._transport_label,
        )
        if self._transport is None:
            self._owned_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.connect_timeout, read=None)
            )
            self._transport = build_transport(
                TransportKind.HTTP_CLIENT, self._owned_client, self._config
            )

        opening = self._opening = asyncio.get_running_loop().create_task(
            self._transport.open(self.endpoint, self._credential, body),
            name="ollama-stream-open",
        )
        try:
            await asyncio.wait((opening,))
        except asyncio.CancelledError:
            opening.cancel()
            opening.add_done_callback(_close_late_source)
            raise
        finally:
            self._opening = None

        if opening.cancelled():
            return None
        if self._cancelled:
            if opening.exception() is None:
                await opening.result().aclose()
            return None
        self._source = opening.result()
        return self._source

    async def _next_delta(self) -> ChatResponseDelta | None:
        source = self._source or await self._open()
        if source is None:
            return None
        while True:
            while self._pending:
                line = self._pending.popleft()
                try:
                    return decode_delta(line)
                except DecodeError as exc:
                    self._skipped += 1
                    logger.debug("Skipping undecodable stream line: %s", exc)

            if self._eof:
                return None

            chunk = await source.read()
            if chunk:
                self._pending.extend(self._framer.feed(chunk))
            else:
                self._eof = True
                self._pending.extend(self._framer.flush())

    def cancel(self) -> None:
        """Stop the stream from a callback on the event loop.

        Closes the transport in a background task. A consumer waiting in
        ``__anext__`` receives StopAsyncIteration.
        """
        if self._finished or self._cancelled:
            return
        self._cancelled = True
        if self._opening is not None:
            self._opening.cancel()
        if self._source is not None:
            self._closing = asyncio.get_running_loop().create_task(self._source.aclose())

    async def aclose(self) -> None:
        """Stop the stream and release the connection. Idempotent."""
        if self._finished:
            return
        self._cancelled = True
        if self._opening is not None:
            self._opening.cancel()
        await self._teardown("cancelled")

    async def __aenter__(self) -> ChatStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _teardown(self, status: str, error: BaseException | None = None) -> None:
        if self._finished:
            return
        self._finished = True

        source, self._source = self._source, None
        try:
            if source is not None:
                await source.aclose()
            if self._owned_client is not None:
                await self._owned_client.aclose()
        finally:
            self._record(status, error)

    @property
    def _transport_label(self) -> str:
        if self.transport_kind is not None:
            return self.transport_kind.value
        return type(self._transport).__name__

    def _record(self, status: str, error: BaseException | None) -> None:
        if self._started_at is None:
            return

        latency_ms = (time.perf_counter() - self._started_at) * 1000
        error_type = type(error).__name__ if error is not None else None

        MetricsCollector.record_request(
            model=self.request.model,
            operation="chat_stream",
            latency_ms=latency_ms,
            success=status != "error",
            error=error_type,
            transport=self._transport_label,
            first_delta_ms=self._first_delta_ms,
            deltas=self._deltas,
        )

        event: dict[str, Any] = {
            "event": "ollama_request",
            "client_type": "async",
            "operation": "chat_stream",
            "status": status,
            "request_id": self.request_id,
            "model": self.request.model,
            "transport": self._transport_label,
            "latency_ms": round(latency_ms, 3),
            "deltas": self._deltas,
            "skipped_lines": self._skipped,
        }
        if self._first_delta_ms is not None:
            event["first_delta_ms"] = round(self._first_delta_ms, 3)
        if self._done_reason is not None:
            event["done_reason"] = self._done_reason
        if error is not None:
            event["error_type"] = error_type
            event["error_message"] = str(error)
        log_request_event(event)

        match status:
            case "error":
                logger.warning("Chat stream %s failed: %s", self.request_id, error)
            case _:
                logger.debug(
                    "Chat stream %s %s after %d delta(s)", self.request_id, status, self._deltas
                )


def _close_late_source(task: asyncio.Task[ByteSource]) -> None:
    if task.cancelled() or task.exception() is not None:
        return
    source = task.result()
    task.get_loop().create_task(source.aclose())


__all__ = ["ChatStream"]
