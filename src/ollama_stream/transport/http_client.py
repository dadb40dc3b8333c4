"""Transport that delegates HTTP to an injected ``httpx.AsyncClient``.

Used for remote or authenticated servers. TLS, chunked decoding and
connection pooling belong to httpx; this module only sends the request,
turns failures into the client's error taxonomy and pumps the decoded body
into a ByteChannel from a dedicated task.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from ollama_stream.core.config import StreamConfig
from ollama_stream.domain.exceptions import (
    ChannelClosedError,
    HttpStatusError,
    StreamConnectionError,
)
from ollama_stream.streaming.channel import ByteChannel
from ollama_stream.transport.base import ByteSource, ChannelByteSource

logger = logging.getLogger(__name__)


def build_headers(credential: str | None) -> dict[str, str]:
    """Headers for a chat request, with bearer authorization when available."""
    headers = {"Content-Type": "application/json"}
    if credential:
        headers["Authorization"] = f"Bearer {credential}"
    return headers


class HttpClientTransport:
    """Streaming ``POST /api/chat`` over a shared httpx client.

    The client is borrowed, never closed here: its owner decides its
    lifetime.
    """

    __slots__ = ("client", "config")

    def __init__(self, client: httpx.AsyncClient, config: StreamConfig | None = None) -> None:
        self.client = client
        self.config = config or StreamConfig()

    async def open(self, endpoint: str, credential: str | None, body: bytes) -> ByteSource:
        request = self.client.build_request(
            "POST",
            f"{endpoint.rstrip('/')}/api/chat",
            content=body,
            headers=build_headers(credential),
        )

        try:
            response = await self.client.send(request, stream=True)
        except httpx.TransportError as exc:
            msg = f"Failed to connect to Ollama API at {endpoint}: {exc}"
            raise StreamConnectionError(msg) from exc

        if not response.is_success:
            try:
                await response.aread()
                text = response.text
            except httpx.TransportError as exc:
                msg = f"Failed to read error response from {endpoint}: {exc}"
                raise StreamConnectionError(msg) from exc
            finally:
                await response.aclose()
            logger.debug("Chat request rejected: %s", response.status_code)
            raise HttpStatusError(response.status_code, text)

        channel = ByteChannel(
            self.config.channel_max_chunks,
            poll_interval=self.config.send_poll_interval,
        )
        task = asyncio.create_task(_pump(response, channel), name="ollama-stream-pump")
        return ChannelByteSource(channel, task.cancel)


async def _pump(response: httpx.Response, channel: ByteChannel) -> None:
    error: BaseException | None = None
    try:
        async for chunk in response.aiter_bytes():
            if not await channel.send(chunk):
                return
    except httpx.HTTPError as exc:
        if not channel.closed:
            logger.debug("HTTP body read failed: %s", exc)
            error = StreamConnectionError(f"Connection lost while streaming: {exc}")
    except Exception as exc:
        logger.exception("Unexpected error in HTTP body pump")
        error = ChannelClosedError(f"Pump stopped unexpectedly: {exc}")
    finally:
        await response.aclose()
    await channel.finish(error)


__all__ = ["HttpClientTransport", "build_headers"]
