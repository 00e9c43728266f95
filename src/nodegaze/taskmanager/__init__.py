"""Task manager — background job processing and cron scheduling.

Provides ``TaskManager`` for periodic background tasks:
- Delivery sweep (re-enqueue due retries and expired leases)
- Metrics calculation (delivery job counts for Prometheus gauges)

Uses ``asyncio`` tasks for scheduling. For clustered deployments the
cache's ``SET NX`` lock ensures only one instance runs a given cron job
at a time.
"""

from __future__ import annotations

from nodegaze.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
