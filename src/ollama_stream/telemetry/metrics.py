"""In-memory metrics for catalog calls and chat streams.

Key behaviors:
    - In-memory storage with automatic size limiting (max 10,000 entries)
    - Time-window filtering for recent metrics analysis
    - Percentile latencies plus time-to-first-delta for streams
    - Per-transport counters (raw_socket vs http_client)

Thread safety:
    Not thread-safe. Record from the event loop thread only; reader threads
    never touch the collector.
"""

from __future__ import annotations

import logging
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar, Self

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RequestMetrics:
    """Metrics for a single request or stream.

    Attributes:
        model: Model name ("system" for catalog-wide calls).
        operation: Operation type ("chat_stream", "list_models", "show_model").
        latency_ms: Wall time from start to completion in milliseconds.
        success: Whether the operation completed without error.
        error: Error type if the operation failed.
        transport: Transport used for streams ("raw_socket" / "http_client").
        first_delta_ms: Time until the first decoded delta (streams only).
        deltas: Number of deltas delivered to the caller (streams only).
        timestamp: UTC time the metric was recorded.
    """

    model: str
    operation: str
    latency_ms: float
    success: bool
    error: str | None = None
    transport: str | None = None
    first_delta_ms: float | None = None
    deltas: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class ServiceMetrics:
    """Aggregated metrics over a window. All time values are in milliseconds."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    requests_by_model: dict[str, int] = field(default_factory=dict)
    requests_by_operation: dict[str, int] = field(default_factory=dict)
    requests_by_transport: dict[str, int] = field(default_factory=dict)
    average_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p95_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    average_first_delta_ms: float | None = None
    total_deltas: int = 0
    errors_by_type: dict[str, int] = field(default_factory=dict)
    last_request_time: datetime | None = None
    first_request_time: datetime | None = None


class MetricsCollector:
    """Class-level metrics storage with automatic size limiting."""

    _metrics: ClassVar[list[RequestMetrics]] = []
    _max_metrics: ClassVar[int] = 10_000

    @classmethod
    def record_request(
        cls,
        model: str,
        operation: str,
        latency_ms: float,
        success: bool,
        error: str | None = None,
        transport: str | None = None,
        first_delta_ms: float | None = None,
        deltas: int = 0,
    ) -> None:
        """Record one metric, trimming the oldest entries past the size limit."""
        metric = RequestMetrics(
            model=model,
            operation=operation,
            latency_ms=latency_ms,
            success=success,
            error=error,
            transport=transport,
            first_delta_ms=first_delta_ms,
            deltas=deltas,
        )
        cls._metrics.append(metric)

        if len(cls._metrics) > cls._max_metrics:
            cls._metrics = cls._metrics[-cls._max_metrics :]

        logger.debug("Recorded metric: %s on %s - %.2fms", operation, model, latency_ms)

    @classmethod
    def get_metrics(cls, window_minutes: int | None = None) -> ServiceMetrics:
        """Aggregate collected metrics, optionally limited to the last N minutes.

        Args:
            window_minutes: Time window in minutes. None aggregates everything;
                zero or negative values yield an empty result.

        Returns:
            ServiceMetrics with aggregated statistics.
        """
        match window_minutes:
            case None:
                metrics = cls._metrics
            case minutes if minutes > 0:
                cutoff = datetime.now(UTC) - timedelta(minutes=minutes)
                metrics = [m for m in cls._metrics if m.timestamp >= cutoff]
            case _:
                metrics = []

        if not metrics:
            return ServiceMetrics()

        latencies = sorted(m.latency_ms for m in metrics)
        total = len(metrics)
        successful = sum(1 for m in metrics if m.success)

        match len(latencies):
            case n if n >= 2:
                quantiles = statistics.quantiles(latencies, n=100)
                p50, p95, p99 = quantiles[49], quantiles[94], quantiles[98]
            case _:
                p50 = p95 = p99 = latencies[0]

        first_deltas = [m.first_delta_ms for m in metrics if m.first_delta_ms is not None]

        return ServiceMetrics(
            total_requests=total,
            successful_requests=successful,
            failed_requests=total - successful,
            requests_by_model=dict(Counter(m.model for m in metrics)),
            requests_by_operation=dict(Counter(m.operation for m in metrics)),
            requests_by_transport=dict(Counter(m.transport for m in metrics if m.transport)),
            average_latency_ms=sum(latencies) / total,
            p50_latency_ms=p50,
            p95_latency_ms=p95,
            p99_latency_ms=p99,
            average_first_delta_ms=(
                sum(first_deltas) / len(first_deltas) if first_deltas else None
            ),
            total_deltas=sum(m.deltas for m in metrics),
            errors_by_type=dict(Counter(m.error for m in metrics if m.error)),
            last_request_time=max(m.timestamp for m in metrics),
            first_request_time=min(m.timestamp for m in metrics),
        )

    @classmethod
    def get_metrics_json(cls, window_minutes: int | None = None) -> dict[str, Any]:
        """Get metrics as a JSON-serializable dictionary (values rounded to 2 places)."""
        metrics = cls.get_metrics(window_minutes)
        return {
            "total_requests": metrics.total_requests,
            "successful_requests": metrics.successful_requests,
            "failed_requests": metrics.failed_requests,
            "requests_by_model": metrics.requests_by_model,
            "requests_by_operation": metrics.requests_by_operation,
            "requests_by_transport": metrics.requests_by_transport,
            "average_latency_ms": round(metrics.average_latency_ms, 2),
            "p50_latency_ms": round(metrics.p50_latency_ms, 2),
            "p95_latency_ms": round(metrics.p95_latency_ms, 2),
            "p99_latency_ms": round(metrics.p99_latency_ms, 2),
            "average_first_delta_ms": (
                round(metrics.average_first_delta_ms, 2)
                if metrics.average_first_delta_ms is not None
                else None
            ),
            "total_deltas": metrics.total_deltas,
            "errors_by_type": metrics.errors_by_type,
            "last_request_time": (
                metrics.last_request_time.isoformat() if metrics.last_request_time else None
            ),
            "first_request_time": (
                metrics.first_request_time.isoformat() if metrics.first_request_time else None
            ),
        }

    @classmethod
    def reset(cls) -> Self:
        """Clear all collected metrics."""
        cls._metrics = []
        return cls


__all__ = ["MetricsCollector", "RequestMetrics", "ServiceMetrics"]
