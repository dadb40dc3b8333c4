"""Reusable test utilities for the Ollama streaming client tests.

Provides NDJSON record builders and an in-memory transport for driving
ChatStream without a network.
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Any

from ollama_stream.domain.exceptions import ChannelClosedError


def chat_line(content: str, *, done: bool = False, model: str = "llama3.2:latest", **extra: Any) -> str:
    """One NDJSON record as Ollama streams it (newline included)."""
    record: dict[str, Any] = {
        "model": model,
        "created_at": "2025-01-01T00:00:00Z",
        "message": {"role": "assistant", "content": content},
        "done": done,
    }
    if done:
        record["done_reason"] = "stop"
    record.update(extra)
    return json.dumps(record, ensure_ascii=False) + "\n"


class FakeSource:
    """ByteSource serving canned chunks, then EOF, an error, or a blocking read."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        error: BaseException | None = None,
        block: bool = False,
    ) -> None:
        self._chunks = deque(chunks)
        self._error = error
        self._block = block
        self._wake = asyncio.Event()
        self.reads = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def read(self) -> bytes:
        if self.closed:
            raise ChannelClosedError("source closed")
        self.reads += 1
        if self._chunks:
            return self._chunks.popleft()
        if self._error is not None:
            raise self._error
        if self._block:
            await self._wake.wait()
            raise ChannelClosedError("source closed")
        return b""

    async def aclose(self) -> None:
        self.close_calls += 1
        self._wake.set()


class FakeTransport:
    """Transport returning a prepared FakeSource and recording open() calls."""

    def __init__(self, source: FakeSource | None = None, *, error: BaseException | None = None) -> None:
        self.source = source
        self.error = error
        self.opened: list[tuple[str, str | None, bytes]] = []

    async def open(self, endpoint: str, credential: str | None, body: bytes) -> FakeSource:
        self.opened.append((endpoint, credential, body))
        if self.error is not None:
            raise self.error
        assert self.source is not None
        return self.source


class SlowOpenTransport(FakeTransport):
    """FakeTransport whose open() waits for ``release`` before returning.

    With ``finish_when_cancelled`` the open ignores cancellation and still
    hands back its source, like a handshake that completes anyway.
    """

    def __init__(self, source: FakeSource, *, finish_when_cancelled: bool = False) -> None:
        super().__init__(source)
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.finish_when_cancelled = finish_when_cancelled
        self.cancelled = False

    async def open(self, endpoint: str, credential: str | None, body: bytes) -> FakeSource:
        self.opened.append((endpoint, credential, body))
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            if not self.finish_when_cancelled:
                raise
        assert self.source is not None
        return self.source
