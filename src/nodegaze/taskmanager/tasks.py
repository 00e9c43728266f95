"""Background task definitions — cron job handlers.

- ``delivery_sweep`` (1 s) — lease and enqueue due retries and jobs whose
  lease expired after a crash
- ``calculate_metrics`` (15 s) — count delivery jobs by status for the
  Prometheus gauge
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from nodegaze.engine.models.delivery import DeliveryJob

if TYPE_CHECKING:
    from nodegaze.engine.client import NodeGazeEngine
    from nodegaze.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

DELIVERY_SWEEP = "delivery_sweep"
CALCULATE_METRICS = "calculate_metrics"


async def task_delivery_sweep(engine: NodeGazeEngine) -> None:
    """Hand jobs that are due for another attempt back to the dispatcher."""
    try:
        count = await engine.delivery.sweep()
        if count:
            logger.debug("Delivery sweep enqueued %d jobs", count)
    except Exception:
        logger.exception("delivery_sweep failed")


async def task_calculate_metrics(engine: NodeGazeEngine, metrics: EngineMetrics) -> None:
    """Count delivery jobs per status and push them to the jobs gauge."""
    try:
        async with engine.datastore.session() as session:
            stmt = select(DeliveryJob.status, func.count(DeliveryJob.id)).group_by(
                DeliveryJob.status
            )
            rows = (await session.execute(stmt)).all()

        metrics.set_job_counts({status: count for status, count in rows})
    except Exception:
        logger.exception("calculate_metrics failed")
