"""
Behavioral tests for transport selection.
"""

import httpx
import pytest

from ollama_stream.transport import (
    HttpClientTransport,
    RawSocketTransport,
    TransportKind,
    build_transport,
    is_local_host,
    select_transport,
)


class TestSelectTransport:
    @pytest.mark.parametrize(
        "endpoint",
        [
            "http://localhost:11434",
            "http://127.0.0.1:11434",
            "http://127.0.0.2",
            "http://[::1]:11434",
            "http://ollama.localhost:8080",
        ],
    )
    def test_local_plain_http_without_credential_uses_raw_socket(self, endpoint):
        assert select_transport(endpoint, None) is TransportKind.RAW_SOCKET

    def test_any_credential_forces_http_client(self):
        assert select_transport("http://localhost:11434", "secret") is TransportKind.HTTP_CLIENT

    def test_empty_credential_counts_as_none(self):
        assert select_transport("http://localhost:11434", "") is TransportKind.RAW_SOCKET

    @pytest.mark.parametrize(
        "endpoint",
        [
            "https://localhost:11434",
            "http://192.168.1.10:11434",
            "https://ollama.com",
            "http://localhost.example.com",
            "not a url",
        ],
    )
    def test_everything_else_uses_http_client(self, endpoint):
        assert select_transport(endpoint, None) is TransportKind.HTTP_CLIENT

    @pytest.mark.parametrize(
        ("host", "expected"),
        [("LOCALHOST", True), ("::1", True), ("10.0.0.1", False), ("example.com", False)],
    )
    def test_is_local_host(self, host, expected):
        assert is_local_host(host) is expected


@pytest.mark.asyncio
class TestBuildTransport:
    async def test_builds_raw_socket_transport(self):
        assert isinstance(build_transport(TransportKind.RAW_SOCKET), RawSocketTransport)

    async def test_builds_http_transport_around_shared_client(self):
        async with httpx.AsyncClient() as client:
            transport = build_transport(TransportKind.HTTP_CLIENT, client)
            assert isinstance(transport, HttpClientTransport)
            assert transport.client is client

    async def test_http_transport_requires_client(self):
        with pytest.raises(ValueError, match="httpx.AsyncClient"):
            build_transport(TransportKind.HTTP_CLIENT)
