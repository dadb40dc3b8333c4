"""Telemetry utilities (metrics, structured request events)."""

from ollama_stream.telemetry.metrics import MetricsCollector, RequestMetrics, ServiceMetrics
from ollama_stream.telemetry.structured_logging import (
    REQUEST_LOGGER,
    configure_request_log,
    log_request_event,
)

__all__ = [
    "REQUEST_LOGGER",
    "MetricsCollector",
    "RequestMetrics",
    "ServiceMetrics",
    "configure_request_log",
    "log_request_event",
]
