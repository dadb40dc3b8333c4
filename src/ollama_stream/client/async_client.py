"""Asynchronous client for an Ollama server.

This module provides the caller-facing facade over the catalog APIs and the
streaming chat pipeline, using httpx for every HTTP call.

Key behaviors:
    - Uses httpx.AsyncClient with connection pooling (created lazily)
    - Lists local models (GET /api/tags) and probes capabilities (POST /api/show)
    - Discovers models: listing plus capability probes, resolved into Model
    - Opens ChatStream instances that share this client's connection pool on
      the HTTP path and use the raw socket path for local servers
    - Records metrics and structured request events for every catalog call

Concurrency:
    - All operations are async and safe for concurrent use
    - Optional semaphore limits concurrent catalog requests
"""

from __future__ import annotations

import asyncio
import logging
import time
import types
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

import httpx
from pydantic import ValidationError

from ollama_stream.core.config import Settings, StreamConfig
from ollama_stream.domain.catalog import KEEP_ALIVE_INDEFINITE, KeepAlive, Model, model_from_show
from ollama_stream.domain.exceptions import HttpStatusError, StreamConnectionError
from ollama_stream.domain.messages import (
    ChatMessage,
    ChatOptions,
    ChatRequest,
    LocalModelListing,
    LocalModelsResponse,
    ModelShow,
    Tool,
)
from ollama_stream.streaming.chat_stream import ChatStream
from ollama_stream.telemetry.metrics import MetricsCollector
from ollama_stream.telemetry.structured_logging import log_request_event

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AsyncClientConfig:
    """Configuration for the asynchronous client.

    Immutable configuration object. All time values are in seconds.

    Attributes:
        base_url: Server base URL (default: "http://localhost:11434").
        api_key: Bearer credential. Forces the HTTP client transport for chat.
        keep_alive: Keep-alive policy applied by ``build_chat_request``.
        timeout: Read timeout for catalog calls (default: 300).
        health_check_timeout: Timeout for health checks (default: 5).
        max_connections: Maximum connections in the pool (default: 50).
        max_keepalive_connections: Maximum keep-alive connections (default: 20).
        max_concurrent_requests: Maximum concurrent catalog requests
            (None = unlimited).
        stream: Streaming transport settings passed to every ChatStream.
    """

    base_url: str = "http://localhost:11434"
    api_key: str | None = field(default=None, repr=False)
    keep_alive: KeepAlive = KEEP_ALIVE_INDEFINITE
    timeout: int = 300
    health_check_timeout: int = 5
    max_connections: int = 50
    max_keepalive_connections: int = 20
    max_concurrent_requests: int | None = None
    stream: StreamConfig = field(default_factory=StreamConfig)

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> AsyncClientConfig:
        """Build a config from environment-backed settings."""
        app_settings = app_settings or Settings.get_settings()
        return cls(
            base_url=app_settings.ollama.url,
            api_key=app_settings.ollama.api_key,
            keep_alive=app_settings.ollama.keep_alive_value,
            timeout=app_settings.client.timeout,
            health_check_timeout=app_settings.client.health_check_timeout,
            max_connections=app_settings.client.max_connections,
            max_keepalive_connections=app_settings.client.max_keepalive_connections,
            stream=app_settings.stream,
        )


def build_chat_request(
    model: Model,
    messages: Sequence[ChatMessage],
    *,
    tools: Sequence[Tool] = (),
    options: ChatOptions | None = None,
    think: bool | None = None,
    keep_alive: KeepAlive | None = None,
) -> ChatRequest:
    """Build a streaming ChatRequest for *model*.

    The model's clamped context window is sent as ``num_ctx`` unless *options*
    already sets one. Thinking is only requested from models that support it.
    """
    options = options or ChatOptions()
    if options.num_ctx is None:
        options = options.model_copy(update={"num_ctx": model.max_tokens})

    if think and model.supports_thinking is False:
        think = None

    return ChatRequest(
        model=model.name,
        messages=list(messages),
        stream=True,
        keep_alive=model.keep_alive if keep_alive is None else keep_alive,
        options=options,
        tools=list(tools),
        think=think,
    )


class AsyncOllamaStreamClient:
    """Async Ollama client: model catalog plus streaming chat.

    Attributes:
        config: Client configuration (AsyncClientConfig).
        client: httpx.AsyncClient instance (initialized lazily).

    Lifecycle:
        - Initialize with __init__() or use as async context manager
        - The httpx client is created on first use
        - Call close() or exit the context manager to release the pool
    """

    __slots__ = ("_semaphore", "client", "config")

    def __init__(self, config: AsyncClientConfig | None = None) -> None:
        self.config = config or AsyncClientConfig.from_settings()
        self.client: httpx.AsyncClient | None = None
        self._semaphore: asyncio.Semaphore | None = None
        if self.config.max_concurrent_requests:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> AsyncOllamaStreamClient:
        await self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Create the pooled httpx client on first use."""
        if self.client is None:
            headers = {}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self.client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=headers,
                timeout=httpx.Timeout(
                    connect=self.config.stream.connect_timeout,
                    read=self.config.timeout,
                    write=5.0,
                    pool=5.0,
                ),
                limits=httpx.Limits(
                    max_keepalive_connections=self.config.max_keepalive_connections,
                    max_connections=self.config.max_connections,
                ),
            )
        return self.client

    @asynccontextmanager
    async def _acquire_slot(self) -> AsyncIterator[None]:
        if self._semaphore is None:
            yield
            return

        await self._semaphore.acquire()
        try:
            yield
        finally:
            self._semaphore.release()

    async def close(self) -> None:
        """Close the httpx client. Safe to call multiple times.

        Streams already handed out keep a reference to the client; close them
        first.
        """
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._ensure_client()
        try:
            async with self._acquire_slot():
                response = await client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            msg = f"Failed to connect to Ollama API at {self.config.base_url}: {exc}"
            raise StreamConnectionError(msg) from exc

        if not response.is_success:
            raise HttpStatusError(response.status_code, response.text)
        return response

    async def list_models(self) -> list[LocalModelListing]:
        """List models installed on the server (``GET /api/tags``).

        Raises:
            HttpStatusError: Non-success status; carries the body text.
            StreamConnectionError: Server unreachable.
            pydantic.ValidationError: Response is not a model listing.
        """
        start_time = time.perf_counter()
        try:
            response = await self._request("GET", "/api/tags")
            listing = LocalModelsResponse.model_validate_json(response.content)
        except HttpStatusError as exc:
            self._record_call("list_models", "system", start_time, f"HTTPError:{exc.status_code}")
            logger.exception("HTTP error listing models: %s", exc.status_code)
            raise
        except (StreamConnectionError, ValidationError) as exc:
            self._record_call("list_models", "system", start_time, type(exc).__name__)
            logger.exception("Failed to list models: %s", exc)
            raise

        self._record_call(
            "list_models", "system", start_time, models_returned=len(listing.models)
        )
        return listing.models

    async def show_model(self, name: str) -> ModelShow:
        """Fetch the capability document for *name* (``POST /api/show``).

        Raises:
            HttpStatusError: Non-success status (e.g., 404 for unknown models).
            StreamConnectionError: Server unreachable.
            pydantic.ValidationError: Response is not a capability document.
        """
        start_time = time.perf_counter()
        try:
            response = await self._request("POST", "/api/show", json={"model": name})
            show = ModelShow.model_validate_json(response.content)
        except HttpStatusError as exc:
            self._record_call("show_model", name, start_time, f"HTTPError:{exc.status_code}")
            logger.exception("HTTP error showing model %s: %s", name, exc.status_code)
            raise
        except (StreamConnectionError, ValidationError) as exc:
            self._record_call("show_model", name, start_time, type(exc).__name__)
            logger.exception("Failed to show model %s: %s", name, exc)
            raise

        self._record_call("show_model", name, start_time)
        return show

    async def discover_models(self) -> list[Model]:
        """List installed models and resolve each one with its capabilities.

        Models are probed concurrently and returned in listing order. Returns
        an empty list when nothing is installed.
        """
        listings = await self.list_models()
        shows = await asyncio.gather(*(self.show_model(item.name) for item in listings))
        return [
            model_from_show(item.name, show, keep_alive=self.config.keep_alive)
            for item, show in zip(listings, shows, strict=True)
        ]

    async def health_check(self) -> bool:
        """Return True if ``GET /api/tags`` answers 200 OK."""
        try:
            client = await self._ensure_client()
            async with self._acquire_slot():
                response = await client.get(
                    "/api/tags", timeout=self.config.health_check_timeout
                )
            match response.status_code:
                case HTTPStatus.OK:
                    return True
                case _:
                    return False
        except httpx.RequestError as exc:
            logger.debug("Health check failed: %s", exc)
            return False

    async def stream_chat(self, request: ChatRequest) -> ChatStream:
        """Create a ChatStream for *request*.

        Nothing is sent until the stream is iterated. The HTTP path borrows
        this client's connection pool.

        Example:
            >>> stream = await client.stream_chat(request)
            >>> async with stream:
            ...     async for delta in stream:
            ...         print(delta.content, end="")
        """
        http_client = await self._ensure_client()
        return ChatStream(
            self.config.base_url,
            self.config.api_key,
            request,
            http_client=http_client,
            config=self.config.stream,
        )

    def _record_call(
        self,
        operation: str,
        model: str,
        start_time: float,
        error_type: str | None = None,
        **extra: Any,
    ) -> None:
        """Record metrics and a request event for one catalog call."""
        latency_ms = (time.perf_counter() - start_time) * 1000
        MetricsCollector.record_request(
            model=model,
            operation=operation,
            latency_ms=latency_ms,
            success=error_type is None,
            error=error_type,
        )
        event: dict[str, Any] = {
            "event": "ollama_request",
            "client_type": "async",
            "operation": operation,
            "status": "success" if error_type is None else "error",
            "request_id": str(uuid.uuid4()),
            "model": model,
            "latency_ms": round(latency_ms, 3),
            **extra,
        }
        if error_type is not None:
            event["error_type"] = error_type
        log_request_event(event)


__all__ = ["AsyncClientConfig", "AsyncOllamaStreamClient", "build_chat_request"]
