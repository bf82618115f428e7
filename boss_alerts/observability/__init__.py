"""Observability layer - logging and metrics."""

from boss_alerts.observability.logging import setup_logging
from boss_alerts.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
