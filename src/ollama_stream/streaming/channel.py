"""Bounded, back-pressured hand-off from a reader context to the event loop.

ByteChannel connects exactly one producer (a reader thread or a reader task)
to exactly one consumer (the delta emitter running on the event loop).

Key behaviors:
    - Bounded: at most ``maxsize`` chunks are buffered
    - Back-pressure: a producer suspends (task) or blocks (thread) while full
    - Ordered: chunks are received in the order they were sent
    - Terminal item: the producer ends the stream with ``finish`` (EOF) or
      ``finish(error)``; the consumer sees ``b""`` or the error re-raised

Cancellation:
    ``close`` is consumer-side teardown. It wakes a consumer blocked in
    ``receive`` (which then raises ChannelClosedError) and makes every later
    ``send`` return False. A thread blocked on a full channel notices the
    close within ``poll_interval`` seconds.

Thread safety:
    ``send_threadsafe``/``finish_threadsafe`` may be called from any thread.
    Every other method must be called on the loop that created the channel.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from contextlib import suppress

from ollama_stream.domain.exceptions import ChannelClosedError

logger = logging.getLogger(__name__)

_EOF = object()
_CLOSED = object()


class ByteChannel:
    """Single-producer/single-consumer bounded byte channel."""

    __slots__ = ("_closed", "_finished", "_loop", "_poll_interval", "_queue", "_terminal")

    def __init__(self, maxsize: int = 64, *, poll_interval: float = 0.1) -> None:
        """Create a channel bound to the running event loop.

        Args:
            maxsize: Maximum number of buffered chunks. Must be >= 1.
            poll_interval: How often a blocked producer thread rechecks for close.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._poll_interval = poll_interval
        self._closed = False
        self._finished = False
        self._terminal: object | None = None

    @property
    def closed(self) -> bool:
        """True once the consumer has closed the channel."""
        return self._closed

    @property
    def finished(self) -> bool:
        """True once the producer has delivered EOF or an error."""
        return self._finished

    @property
    def buffered(self) -> int:
        """Number of items currently waiting for the consumer."""
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def send(self, chunk: bytes) -> bool:
        """Send *chunk* from a task on the channel's loop.

        Returns:
            False if the consumer closed the channel; the producer should stop.
        """
        if self._closed:
            return False
        if chunk:
            await self._queue.put(bytes(chunk))
        return not self._closed

    async def finish(self, error: BaseException | None = None) -> None:
        """End the stream from a task: EOF, or *error* for the consumer to raise."""
        if self._closed or self._finished:
            return
        self._finished = True
        await self._queue.put(_EOF if error is None else error)

    def send_threadsafe(self, chunk: bytes) -> bool:
        """Send *chunk* from a reader thread, blocking while the channel is full."""
        if not chunk:
            return not self._closed
        return self._put_threadsafe(bytes(chunk))

    def finish_threadsafe(self, error: BaseException | None = None) -> None:
        """End the stream from a reader thread."""
        if self._closed or self._finished:
            return
        self._finished = True
        self._put_threadsafe(_EOF if error is None else error)

    def _put_threadsafe(self, item: object) -> bool:
        if self._closed:
            return False
        try:
            future = asyncio.run_coroutine_threadsafe(self._queue.put(item), self._loop)
        except RuntimeError:
            # Loop already closed; nobody is left to consume.
            return False

        while True:
            try:
                future.result(timeout=self._poll_interval)
            except TimeoutError:
                if self._closed or self._loop.is_closed():
                    future.cancel()
                    return False
            except concurrent.futures.CancelledError:
                return False
            else:
                return not self._closed

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    async def receive(self) -> bytes:
        """Wait for the next chunk.

        Returns:
            The next chunk, or ``b""`` once the producer signalled EOF.

        Raises:
            ChannelClosedError: If the channel was closed by the consumer.
            BaseException: Whatever error the producer finished with.
        """
        if self._terminal is _EOF:
            return b""
        if self._terminal is not None:
            raise ChannelClosedError("Reader hand-off already ended with an error")
        if self._closed:
            raise ChannelClosedError("Reader hand-off channel is closed")

        item = await self._queue.get()

        if self._closed or item is _CLOSED:
            raise ChannelClosedError("Reader hand-off channel is closed")
        if item is _EOF:
            self._terminal = _EOF
            return b""
        if isinstance(item, BaseException):
            self._terminal = item
            raise item
        return item  # type: ignore[return-value]

    def close(self) -> None:
        """Tear the channel down from the consumer side. Idempotent."""
        if self._closed:
            return
        self._closed = True

        drained = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            drained += 1

        with suppress(asyncio.QueueFull):
            self._queue.put_nowait(_CLOSED)

        if drained:
            logger.debug("Closed reader hand-off, dropped %d buffered chunk(s)", drained)


__all__ = ["ByteChannel"]
