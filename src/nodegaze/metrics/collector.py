"""Metrics collector — Prometheus counters, gauges, histograms.

Exposed series:
- ``nodegaze_events_ingested_total`` counter by ``event_type``
- ``nodegaze_delivery_attempts_total`` counter by ``channel`` and ``outcome``
- ``nodegaze_delivery_duration_seconds`` histogram by ``channel``
- ``nodegaze_delivery_jobs`` gauge by job ``status``
- ``nodegaze_cron_histogram`` / ``nodegaze_cron_last_execution_gauge``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from nodegaze.engine.models.delivery import JobStatus

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

_PREFIX = "nodegaze"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`EngineMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class EngineMetrics:
    """High-level metrics for ingestion, delivery and cron jobs."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._events_ingested = self._collector.counter(
            f"{_PREFIX}_events_ingested",
            "Events accepted by the event store",
            ("event_type",),
        )
        self._delivery_attempts = self._collector.counter(
            f"{_PREFIX}_delivery_attempts",
            "Delivery attempts by channel and outcome",
            ("channel", "outcome"),
        )
        self._delivery_duration = self._collector.histogram(
            f"{_PREFIX}_delivery_duration_seconds",
            "Duration of outbound delivery HTTP calls",
            ("channel",),
        )
        self._jobs = self._collector.gauge(
            f"{_PREFIX}_delivery_jobs",
            "Delivery jobs by status",
            ("status",),
        )

        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def event_ingested(self, event_type: str) -> None:
        self._events_ingested.labels(event_type=event_type).inc()

    def delivery_attempt(self, channel: str, outcome: str) -> None:
        """Count one delivery attempt (``outcome``: succeeded, retry, failed)."""
        self._delivery_attempts.labels(channel=channel, outcome=outcome).inc()

    def set_job_counts(self, counts: Mapping[str, int]) -> None:
        """Set the job gauge; statuses missing from *counts* are reset to 0."""
        for status in JobStatus:
            self._jobs.labels(status=status.value).set(counts.get(status.value, 0))

    @contextmanager
    def track_delivery(self, channel: str) -> Iterator[None]:
        """Track the duration of one outbound HTTP call."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._delivery_duration.labels(channel=channel).observe(time.monotonic() - start)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
