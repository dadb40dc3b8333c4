"""Transports for streaming chat: raw socket (local) and httpx (remote)."""

from ollama_stream.transport.base import ByteSource, ChannelByteSource, Transport
from ollama_stream.transport.http_client import HttpClientTransport
from ollama_stream.transport.raw_socket import RawSocketTransport
from ollama_stream.transport.selector import (
    TransportKind,
    build_transport,
    is_local_host,
    select_transport,
)

__all__ = [
    "ByteSource",
    "ChannelByteSource",
    "HttpClientTransport",
    "RawSocketTransport",
    "Transport",
    "TransportKind",
    "build_transport",
    "is_local_host",
    "select_transport",
]
