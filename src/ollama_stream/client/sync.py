"""Synchronous catalog client for scripts and non-async callers.

Uses the requests library with a pooled Session. Only the catalog APIs are
offered here; streaming chat needs an event loop and lives in the async
client.

Thread safety:
    Each OllamaCatalogClient owns its own session. Share one instance per
    thread.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter

from ollama_stream.core.config import Settings
from ollama_stream.domain.exceptions import HttpStatusError, StreamConnectionError
from ollama_stream.domain.messages import LocalModelListing, LocalModelsResponse, ModelShow
from ollama_stream.telemetry.metrics import MetricsCollector
from ollama_stream.telemetry.structured_logging import log_request_event

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CatalogClientConfig:
    """Configuration for the synchronous catalog client.

    Attributes:
        base_url: Server base URL (default: "http://localhost:11434").
        api_key: Bearer credential sent on every request when set.
        timeout: Request timeout in seconds (default: 300).
        health_check_timeout: Health check timeout in seconds (default: 5).
    """

    base_url: str = "http://localhost:11434"
    api_key: str | None = field(default=None, repr=False)
    timeout: int = 300
    health_check_timeout: int = 5

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> CatalogClientConfig:
        app_settings = app_settings or Settings.get_settings()
        return cls(
            base_url=app_settings.ollama.url,
            api_key=app_settings.ollama.api_key,
            timeout=app_settings.client.timeout,
            health_check_timeout=app_settings.client.health_check_timeout,
        )


class OllamaCatalogClient:
    """Blocking access to ``/api/tags`` and ``/api/show``.

    Attributes:
        config: Client configuration (CatalogClientConfig).
        session: requests.Session with a pooled HTTPAdapter mounted.
    """

    __slots__ = ("config", "session")

    def __init__(self, config: CatalogClientConfig | None = None) -> None:
        self.config = config or CatalogClientConfig.from_settings()
        self.session = requests.Session()
        # No automatic retries: failures surface to the caller unchanged.
        adapter = HTTPAdapter(pool_connections=10, pool_maxsize=10, max_retries=0)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        if self.config.api_key:
            self.session.headers["Authorization"] = f"Bearer {self.config.api_key}"

    def __enter__(self) -> OllamaCatalogClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self.config.timeout)
        try:
            response = self.session.request(method, f"{self.config.base_url}{path}", **kwargs)
        except requests.exceptions.RequestException as exc:
            msg = f"Failed to connect to Ollama API at {self.config.base_url}: {exc}"
            raise StreamConnectionError(msg) from exc

        if not response.ok:
            raise HttpStatusError(response.status_code, response.text)
        return response

    def list_models(self) -> list[LocalModelListing]:
        """List models installed on the server.

        Raises:
            HttpStatusError: Non-success status; carries the body text.
            StreamConnectionError: Server unreachable.
            pydantic.ValidationError: Response is not a model listing.
        """
        start_time = time.perf_counter()
        try:
            response = self._request("GET", "/api/tags")
            listing = LocalModelsResponse.model_validate_json(response.content)
        except HttpStatusError as exc:
            self._record_call("list_models", "system", start_time, f"HTTPError:{exc.status_code}")
            logger.exception("HTTP error listing models: %s", exc.status_code)
            raise
        except (StreamConnectionError, ValidationError) as exc:
            self._record_call("list_models", "system", start_time, type(exc).__name__)
            logger.exception("Failed to list models: %s", exc)
            raise

        self._record_call("list_models", "system", start_time)
        return listing.models

    def show_model(self, name: str) -> ModelShow:
        """Fetch the capability document for *name*."""
        start_time = time.perf_counter()
        try:
            response = self._request("POST", "/api/show", json={"model": name})
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

    def health_check(self) -> bool:
        try:
            response = self.session.get(
                f"{self.config.base_url}/api/tags",
                timeout=self.config.health_check_timeout,
            )
            match response.status_code:
                case HTTPStatus.OK:
                    return True
                case _:
                    return False
        except requests.exceptions.RequestException as exc:
            logger.debug("Health check failed: %s", exc)
            return False

    def _record_call(
        self, operation: str, model: str, start_time: float, error_type: str | None = None
    ) -> None:
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
            "client_type": "sync",
            "operation": operation,
            "status": "success" if error_type is None else "error",
            "request_id": str(uuid.uuid4()),
            "model": model,
            "latency_ms": round(latency_ms, 3),
        }
        if error_type is not None:
            event["error_type"] = error_type
        log_request_event(event)


__all__ = ["CatalogClientConfig", "OllamaCatalogClient"]
