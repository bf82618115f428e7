"""
Prometheus metrics for the alert pipeline.

Defines and exposes metrics for:
- Inbound events by outcome
- Alerts scheduled and fired
- Dispatch failures
- Dispatch tick latency

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class MetricsCollector:
    """
    Prometheus metrics collector for boss-alerts.

    Usage:
        metrics = get_metrics()
        metrics.start_server(8000)
        metrics.record_event("scheduled")
        metrics.record_tick(claimed=2, fired=2, latency=0.12)
    """

    def __init__(self):
        self.events_processed = Counter(
            "boss_alerts_events_processed_total",
            "Total inbound events processed",
            ["status"],  # scheduled, duplicate, ignored, malformed, error
        )

        self.alerts_scheduled = Counter(
            "boss_alerts_alerts_scheduled_total",
            "Total alerts inserted into the store",
        )

        self.alerts_claimed = Counter(
            "boss_alerts_alerts_claimed_total",
            "Total alerts claimed by dispatch ticks",
        )

        self.alerts_fired = Counter(
            "boss_alerts_alerts_fired_total",
            "Total alerts delivered and marked fired",
        )

        self.dispatch_failures = Counter(
            "boss_alerts_dispatch_failures_total",
            "Total per-alert dispatch failures",
            ["reason"],  # send_failed, timeout, mark_failed, release_failed
        )

        self.tick_latency = Histogram(
            "boss_alerts_tick_latency_seconds",
            "Time to run one dispatch tick",
            buckets=LATENCY_BUCKETS,
        )

        logger.info("Prometheus metrics initialized")

    def start_server(self, port: int) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to expose metrics on
        """
        start_http_server(port, registry=REGISTRY)
        logger.info(f"Prometheus metrics server started on port {port}")

    def record_event(self, status: str) -> None:
        """Record the outcome of one inbound event."""
        self.events_processed.labels(status=status).inc()
        if status == "scheduled":
            self.alerts_scheduled.inc()

    def record_dispatch_failure(self, reason: str) -> None:
        """Record a per-alert dispatch failure."""
        self.dispatch_failures.labels(reason=reason).inc()

    def record_tick(self, claimed: int, fired: int, latency: float) -> None:
        """
        Record the result of one dispatch tick.

        Args:
            claimed: Alerts claimed in the tick
            fired: Alerts delivered and marked fired
            latency: Tick duration in seconds
        """
        if claimed:
            self.alerts_claimed.inc(claimed)
        if fired:
            self.alerts_fired.inc(fired)
        self.tick_latency.observe(latency)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
