"""Choose between the raw socket and HTTP client transports.

The raw socket path only speaks plain HTTP and never sends credentials, so it
is used exclusively for unauthenticated ``http://`` endpoints on the local
host. Everything else goes through httpx. The choice is made once per
request; a failure on the chosen path is never retried on the other.
"""

from __future__ import annotations

import ipaddress
import logging
from enum import StrEnum

import httpx

from ollama_stream.core.config import StreamConfig
from ollama_stream.transport.base import Transport
from ollama_stream.transport.http_client import HttpClientTransport
from ollama_stream.transport.raw_socket import RawSocketTransport

logger = logging.getLogger(__name__)


class TransportKind(StrEnum):
    """Available transport strategies."""

    RAW_SOCKET = "raw_socket"
    HTTP_CLIENT = "http_client"


def is_local_host(host: str) -> bool:
    """True for ``localhost``, ``*.localhost`` and loopback IP literals."""
    host = host.strip("[]").lower()
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def select_transport(endpoint: str, credential: str | None) -> TransportKind:
    """Pick the transport for *endpoint*.

    Returns RAW_SOCKET only when the scheme is ``http``, the host is local and
    there is no credential. Malformed endpoints fall back to HTTP_CLIENT so
    httpx reports the error.
    """
    if credential:
        return TransportKind.HTTP_CLIENT
    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL:
        return TransportKind.HTTP_CLIENT

    if url.scheme == "http" and is_local_host(url.host):
        return TransportKind.RAW_SOCKET
    return TransportKind.HTTP_CLIENT


def build_transport(
    kind: TransportKind,
    http_client: httpx.AsyncClient | None = None,
    config: StreamConfig | None = None,
) -> Transport:
    """Instantiate the transport for *kind*.

    Raises:
        ValueError: HTTP_CLIENT was requested without an httpx client.
    """
    match kind:
        case TransportKind.RAW_SOCKET:
            return RawSocketTransport(config)
        case TransportKind.HTTP_CLIENT:
            if http_client is None:
                msg = "HTTP client transport requires an httpx.AsyncClient"
                raise ValueError(msg)
            return HttpClientTransport(http_client, config)
        case _:
            msg = f"Unknown transport kind: {kind!r}"
            raise ValueError(msg)


__all__ = ["TransportKind", "build_transport", "is_local_host", "select_transport"]
