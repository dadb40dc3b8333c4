"""
Comprehensive behavioral tests for telemetry modules.

Tests focus on real behavior: aggregation, time windows, empty metrics and
the JSON Lines request log. No mocks - tests use real data structures.
"""

import json
import logging
from datetime import UTC, datetime, timedelta

import pytest

from ollama_stream.telemetry import (
    REQUEST_LOGGER,
    MetricsCollector,
    configure_request_log,
    log_request_event,
)


class TestMetricsCollector:
    """Behavioral tests for MetricsCollector."""

    def test_record_request_stores_metric(self):
        """Test that record_request() stores metric with all fields."""
        MetricsCollector.record_request(
            model="llama3.2",
            operation="chat_stream",
            latency_ms=123.45,
            success=True,
            transport="raw_socket",
            first_delta_ms=12.5,
            deltas=7,
        )

        metrics = MetricsCollector.get_metrics()
        assert metrics.total_requests == 1
        assert metrics.successful_requests == 1
        assert metrics.requests_by_transport == {"raw_socket": 1}
        assert metrics.average_first_delta_ms == 12.5
        assert metrics.total_deltas == 7

    def test_record_request_tracks_failures(self):
        MetricsCollector.record_request(
            model="llama3.2",
            operation="chat_stream",
            latency_ms=50.0,
            success=False,
            error="StreamConnectionError",
        )

        metrics = MetricsCollector.get_metrics()
        assert metrics.failed_requests == 1
        assert metrics.errors_by_type == {"StreamConnectionError": 1}

    def test_record_request_limits_collection_size(self, monkeypatch):
        """Test that metrics collection is limited to _max_metrics."""
        monkeypatch.setattr(MetricsCollector, "_max_metrics", 10)

        for i in range(15):
            MetricsCollector.record_request(
                model="m", operation="list_models", latency_ms=float(i), success=True
            )

        assert len(MetricsCollector._metrics) == 10
        assert MetricsCollector._metrics[0].latency_ms == 5.0

    def test_percentiles(self):
        for latency in range(1, 101):
            MetricsCollector.record_request(
                model="m", operation="chat_stream", latency_ms=float(latency), success=True
            )

        metrics = MetricsCollector.get_metrics()
        assert metrics.average_latency_ms == pytest.approx(50.5)
        assert 49 <= metrics.p50_latency_ms <= 52
        assert metrics.p95_latency_ms > metrics.p50_latency_ms
        assert metrics.p99_latency_ms >= metrics.p95_latency_ms

    def test_single_metric_percentiles(self):
        MetricsCollector.record_request(model="m", operation="x", latency_ms=7.0, success=True)
        metrics = MetricsCollector.get_metrics()
        assert metrics.p50_latency_ms == metrics.p99_latency_ms == 7.0

    def test_empty_metrics(self):
        metrics = MetricsCollector.get_metrics()
        assert metrics.total_requests == 0
        assert metrics.average_first_delta_ms is None
        assert metrics.last_request_time is None

    def test_time_window_excludes_old_metrics(self):
        MetricsCollector.record_request(model="m", operation="x", latency_ms=1.0, success=True)
        MetricsCollector._metrics[0].timestamp = datetime.now(UTC) - timedelta(hours=2)
        MetricsCollector.record_request(model="m", operation="x", latency_ms=2.0, success=True)

        assert MetricsCollector.get_metrics(window_minutes=60).total_requests == 1
        assert MetricsCollector.get_metrics().total_requests == 2
        assert MetricsCollector.get_metrics(window_minutes=0).total_requests == 0

    def test_metrics_json_is_serializable(self):
        MetricsCollector.record_request(
            model="m", operation="chat_stream", latency_ms=1.23456, success=True, deltas=3
        )
        data = MetricsCollector.get_metrics_json()
        json.dumps(data)
        assert data["average_latency_ms"] == 1.23
        assert data["total_deltas"] == 3
        assert data["average_first_delta_ms"] is None


class TestRequestLog:
    """Behavioral tests for structured request events."""

    @pytest.fixture
    def request_log(self, tmp_path):
        path = tmp_path / "logs" / "requests.jsonl"
        handler = configure_request_log(path)
        yield path
        REQUEST_LOGGER.removeHandler(handler)
        handler.close()
        REQUEST_LOGGER.addHandler(logging.NullHandler())

    def read_events(self, path):
        for handler in REQUEST_LOGGER.handlers:
            handler.flush()
        return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]

    def test_events_are_written_as_json_lines(self, request_log):
        log_request_event({"event": "ollama_request", "operation": "chat_stream", "status": "success"})
        log_request_event({"event": "ollama_request", "operation": "list_models", "status": "error"})

        events = self.read_events(request_log)
        assert [event["operation"] for event in events] == ["chat_stream", "list_models"]
        assert all("timestamp" in event for event in events)

    def test_datetime_values_are_serialized(self, request_log):
        moment = datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)
        log_request_event({"event": "e", "started": moment, "timestamp": "fixed"})

        event = self.read_events(request_log)[0]
        assert event["started"].startswith("2025-01-02T03:04:05")
        assert event["timestamp"] == "fixed"

    def test_request_logger_does_not_propagate(self):
        assert REQUEST_LOGGER.propagate is False
