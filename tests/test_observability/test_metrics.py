"""
Tests for the Prometheus metrics collector and logging setup.

The collector registers on the global registry, which only accepts each
metric name once per process, so all tests share get_metrics().
"""

import structlog
from prometheus_client import REGISTRY

from boss_alerts.observability.logging import bind_context, clear_context, setup_logging
from boss_alerts.observability.metrics import get_metrics


def _value(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsCollector:

    def test_singleton(self):
        assert get_metrics() is get_metrics()

    def test_record_scheduled_event(self):
        metrics = get_metrics()
        before_events = _value("boss_alerts_events_processed_total", status="scheduled")
        before_alerts = _value("boss_alerts_alerts_scheduled_total")

        metrics.record_event("scheduled")

        assert _value("boss_alerts_events_processed_total", status="scheduled") == before_events + 1
        assert _value("boss_alerts_alerts_scheduled_total") == before_alerts + 1

    def test_ignored_event_is_not_scheduled(self):
        metrics = get_metrics()
        before = _value("boss_alerts_alerts_scheduled_total")

        metrics.record_event("ignored")

        assert _value("boss_alerts_alerts_scheduled_total") == before

    def test_record_tick(self):
        metrics = get_metrics()
        before_claimed = _value("boss_alerts_alerts_claimed_total")
        before_fired = _value("boss_alerts_alerts_fired_total")
        before_ticks = _value("boss_alerts_tick_latency_seconds_count")

        metrics.record_tick(claimed=3, fired=2, latency=0.05)

        assert _value("boss_alerts_alerts_claimed_total") == before_claimed + 3
        assert _value("boss_alerts_alerts_fired_total") == before_fired + 2
        assert _value("boss_alerts_tick_latency_seconds_count") == before_ticks + 1

    def test_record_dispatch_failure(self):
        metrics = get_metrics()
        before = _value("boss_alerts_dispatch_failures_total", reason="timeout")

        metrics.record_dispatch_failure("timeout")

        assert _value("boss_alerts_dispatch_failures_total", reason="timeout") == before + 1


class TestLogging:

    def test_bound_context_is_merged(self):
        setup_logging("DEBUG", json_output=True)
        bind_context(mode="mock")
        try:
            context = structlog.contextvars.get_contextvars()
            assert context["mode"] == "mock"
        finally:
            clear_context()

        assert structlog.contextvars.get_contextvars() == {}
