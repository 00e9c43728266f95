"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from nodegaze.metrics.collector import EngineMetrics, MetricsCollector

__all__ = ["EngineMetrics", "MetricsCollector"]
