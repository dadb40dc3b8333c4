"""Centralized configuration management for the Ollama streaming client.

This module provides a single source of truth for all configuration values,
using pydantic-settings for environment variable loading and validation.

Configuration Sections:
    - OllamaConfig: Server endpoint, credential and keep-alive policy
    - StreamConfig: Transport and hand-off tuning for streaming chat
    - ClientConfig: HTTP client timeouts and connection pool limits

Environment Variable Prefixes:
    - OLLAMA_*: Server settings
    - STREAM_*: Streaming transport settings
    - CLIENT_*: HTTP client settings

Usage:
    from ollama_stream.core.config import settings

    endpoint = settings.ollama.url
    channel_size = settings.stream.channel_max_chunks
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OLLAMA_API_URL = "http://localhost:11434"


class OllamaConfig(BaseSettings):
    """Ollama server configuration.

    Attributes:
        host: Server hostname. Default: "localhost".
        port: Server port. Range: [1, 65535]. Default: 11434.
        base_url: Full base URL (overrides host/port if set). Must start with
            http:// or https://.
        api_key: Bearer credential for hosted servers. Any credential forces
            the HTTP client transport.
        keep_alive: Keep-alive policy sent with chat requests. Seconds as an
            integer string ("-1" = indefinite) or a duration like "5m".
    """

    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Ollama server host")
    port: int = Field(default=11434, ge=1, le=65535, description="Ollama server port")
    base_url: str | None = Field(default=None, description="Full base URL (overrides host/port)")
    api_key: str | None = Field(default=None, description="Bearer credential")
    keep_alive: str = Field(default="-1", description="Model keep-alive policy")

    @property
    def url(self) -> str:
        """Full endpoint URL without a trailing slash."""
        if self.base_url:
            return self.base_url.rstrip("/")
        return f"http://{self.host}:{self.port}"

    @property
    def keep_alive_value(self) -> int | str:
        """keep_alive as sent on the wire: an int when numeric, else the duration string."""
        try:
            return int(self.keep_alive)
        except ValueError:
            return self.keep_alive

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str | None) -> str | None:
        """Ensure base_url starts with http:// or https:// if provided."""
        if v and not v.startswith(("http://", "https://")):
            msg = "base_url must start with http:// or https://"
            raise ValueError(msg)
        return v


class StreamConfig(BaseSettings):
    """Streaming transport configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STREAM_",
        case_sensitive=False,
        extra="ignore",
    )

    read_chunk_size: int = Field(
        default=8192, ge=1, le=1024 * 1024, description="Bytes per socket read"
    )
    channel_max_chunks: int = Field(
        default=64, ge=1, le=10_000, description="Reader hand-off capacity (chunks)"
    )
    connect_timeout: float = Field(
        default=5.0, gt=0.0, le=120.0, description="Raw socket connect timeout (seconds)"
    )
    header_max_bytes: int = Field(
        default=64 * 1024, ge=1024, le=1024 * 1024, description="Max response header size"
    )
    send_poll_interval: float = Field(
        default=0.1,
        gt=0.0,
        le=5.0,
        description="How often a blocked reader thread rechecks for cancellation (seconds)",
    )


class ClientConfig(BaseSettings):
    """HTTP client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLIENT_",
        case_sensitive=False,
        extra="ignore",
    )

    timeout: int = Field(default=300, ge=1, le=3600, description="Request timeout (seconds)")
    health_check_timeout: int = Field(
        default=5, ge=1, le=60, description="Health check timeout (seconds)"
    )
    max_connections: int = Field(default=50, ge=1, le=1000, description="Max HTTP connections")
    max_keepalive_connections: int = Field(
        default=20, ge=1, le=500, description="Max keep-alive connections"
    )


class Settings(BaseSettings):
    """Root settings class containing all configuration sections.

    Configuration is loaded from:
        1. Environment variables (with appropriate prefixes)
        2. .env file (if present in the working directory)
        3. Default values (if not set)

    Note:
        Settings are loaded once and cached. Environment variable changes
        require clearing the cache (``Settings.get_settings.cache_clear()``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @classmethod
    @lru_cache(maxsize=1)
    def get_settings(cls) -> Settings:
        """Get cached settings instance (singleton pattern)."""
        return cls()


# Global settings instance
settings = Settings.get_settings()

__all__ = [
    "OLLAMA_API_URL",
    "ClientConfig",
    "OllamaConfig",
    "Settings",
    "StreamConfig",
    "settings",
]
