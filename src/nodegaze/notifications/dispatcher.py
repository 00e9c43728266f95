"""Delivery dispatcher — routes jobs to endpoint lanes and runs attempts.

A job moves ``pending -> in_flight -> succeeded | pending (retry) | failed``,
or to ``cancelled`` when its endpoint was deactivated before a new attempt
started. Each executed attempt appends exactly one ledger row in the same
transaction as the job transition. Retries are never slept on: the job is
released with a ``next_attempt_at`` and the ``delivery_sweep`` cron job
hands it back once due.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError

from nodegaze.engine.models.base import utcnow
from nodegaze.engine.models.delivery import AttemptStatus, DeliveryAttempt, DeliveryJob, JobStatus
from nodegaze.engine.models.event import Event, EventSeverity
from nodegaze.engine.models.notification import Notification
from nodegaze.errors.definitions import ErrDeliveryDisabled
from nodegaze.errors.delivery_errors import (
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from nodegaze.notifications.formatter import format_payload
from nodegaze.notifications.lane import EndpointLane, QueuedJob
from nodegaze.notifications.retry import Outcome, RetryPolicy, classify_status

if TYPE_CHECKING:
    import random
    from collections.abc import Iterable
    from datetime import datetime

    from nodegaze.config.settings import DeliveryConfig
    from nodegaze.datastore.client import Datastore
    from nodegaze.metrics.collector import EngineMetrics
    from nodegaze.notifications.formatter import Payload

logger = logging.getLogger(__name__)

ERROR_MAX_LENGTH = 500
TEST_EVENT_TYPE = "TestNotification"


@dataclass(frozen=True)
class SendTestResult:
    """Outcome of a one-off connectivity check; never written to the ledger."""

    success: bool
    http_status: int | None
    error: str | None
    duration_ms: int


def _truncate_error(message: str | None) -> str | None:
    if message is None:
        return None
    return message[:ERROR_MAX_LENGTH]


class DeliveryDispatcher:
    """Owns the endpoint lanes, the shared HTTP client and the global slot limit.

    Usage::

        dispatcher = DeliveryDispatcher(datastore, config.delivery)
        await dispatcher.start()
        dispatcher.enqueue(jobs)
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        datastore: Datastore,
        config: DeliveryConfig,
        *,
        metrics: EngineMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._datastore = datastore
        self._config = config
        self._metrics = metrics
        self._transport = transport
        self._rng = rng
        self._policy = RetryPolicy.from_config(config)
        self._lanes: dict[str, EndpointLane] = {}
        self._slots = asyncio.Semaphore(config.workers)
        self._client: httpx.AsyncClient | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def lease_until(self, now: datetime | None = None) -> datetime:
        """Expiry of a lease taken at *now*."""
        return (now or utcnow()) + timedelta(seconds=self._config.lease_seconds)

    async def start(self) -> None:
        """Open the HTTP client and accept jobs."""
        if self._running:
            return
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            headers={"User-Agent": self._config.user_agent},
            follow_redirects=False,
            transport=self._transport,
        )
        self._running = True
        logger.info(
            "Delivery dispatcher started (workers=%d, per endpoint=%d)",
            self._config.workers,
            self._config.per_endpoint_concurrency,
        )

    async def stop(self) -> None:
        """Stop all lanes and close the HTTP client.

        Jobs still queued keep their database state and are picked up again
        by the sweep once their lease expires.
        """
        if not self._running:
            return
        self._running = False
        for lane in self._lanes.values():
            await lane.stop()
        self._lanes.clear()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Delivery dispatcher stopped")

    # -- Queueing --

    def _lane(self, notification_id: str) -> EndpointLane:
        lane = self._lanes.get(notification_id)
        if lane is None:
            lane = EndpointLane(
                notification_id,
                self._run_queued,
                concurrency=self._config.per_endpoint_concurrency,
            )
            self._lanes[notification_id] = lane
            lane.start()
        return lane

    def enqueue(self, jobs: Iterable[DeliveryJob]) -> int:
        """Route *jobs* to their endpoint lanes in the given order.

        Returns:
            The number of jobs queued (0 while the dispatcher is stopped).
        """
        if not self._running:
            return 0
        count = 0
        for job in jobs:
            self._lane(job.notification_id).put(QueuedJob(job.id, job.attempt_number))
            count += 1
        return count

    async def _run_queued(self, item: QueuedJob) -> None:
        await self.deliver(item.job_id, item.attempt_number)

    async def wait_idle(self) -> None:
        """Wait until every lane has drained its queue."""
        while any(lane.queued or lane.busy for lane in self._lanes.values()):
            await asyncio.gather(*(lane.join() for lane in list(self._lanes.values())))

    async def prune_idle_lanes(self) -> int:
        """Stop and drop lanes with nothing queued or running.

        Returns:
            The number of lanes removed.
        """
        idle = [nid for nid, lane in self._lanes.items() if lane.is_idle]
        lanes = [self._lanes.pop(nid) for nid in idle]
        for lane in lanes:
            await lane.stop()
        if lanes:
            logger.debug("Pruned %d idle delivery lanes", len(lanes))
        return len(lanes)

    def stats(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "lanes": len(self._lanes),
            "queued": sum(lane.queued for lane in self._lanes.values()),
            "in_flight": sum(lane.busy for lane in self._lanes.values()),
            "workers": self._config.workers,
        }

    # -- Attempts --

    async def _claim(self, job_id: int, attempt_number: int, now: datetime) -> bool:
        stmt = (
            update(DeliveryJob)
            .where(
                DeliveryJob.id == job_id,
                DeliveryJob.status == JobStatus.PENDING,
                DeliveryJob.attempt_number == attempt_number,
            )
            .values(status=JobStatus.IN_FLIGHT, claimed_until=self.lease_until(now))
        )
        async with self._datastore.session() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def _cancel(self, job: DeliveryJob, reason: str) -> None:
        stmt = (
            update(DeliveryJob)
            .where(DeliveryJob.id == job.id, DeliveryJob.status == JobStatus.IN_FLIGHT)
            .values(status=JobStatus.CANCELLED, claimed_until=None, last_error=reason)
        )
        async with self._datastore.session() as session:
            await session.execute(stmt)
            await session.commit()
        logger.info("Delivery job %d cancelled: %s", job.id, reason)

    async def _post(self, notification: Notification, payload: Payload) -> int:
        """POST *payload* and return the HTTP status.

        The caller holds a global slot. The whole call, response body included,
        is bounded by ``timeout`` so it always ends inside the job's lease.

        Raises:
            TransientDeliveryError: On 429, 5xx, timeouts and network errors.
            PermanentDeliveryError: On other non-2xx statuses or a malformed URL.
        """
        if self._client is None:
            raise ErrDeliveryDisabled
        channel = notification.notification_type
        try:
            async with asyncio.timeout(self._config.timeout):
                if self._metrics:
                    with self._metrics.track_delivery(channel):
                        response = await self._client.post(
                            notification.url, content=payload.body, headers=payload.headers
                        )
                else:
                    response = await self._client.post(
                        notification.url, content=payload.body, headers=payload.headers
                    )
        except (httpx.TimeoutException, TimeoutError) as exc:
            msg = f"timeout after {self._config.timeout}s: {type(exc).__name__}"
            raise TransientDeliveryError(msg) from exc
        except httpx.InvalidURL as exc:
            raise PermanentDeliveryError(f"invalid url: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransientDeliveryError(str(exc) or type(exc).__name__) from exc

        status = response.status_code
        outcome = classify_status(status)
        if outcome is Outcome.TRANSIENT:
            raise TransientDeliveryError(f"HTTP {status}", http_status=status)
        if outcome is Outcome.PERMANENT:
            raise PermanentDeliveryError(f"HTTP {status}", http_status=status)
        return status

    async def deliver(self, job_id: int, attempt_number: int) -> DeliveryAttempt | None:
        """Run attempt *attempt_number* of job *job_id* now.

        The global slot is taken before the job is claimed, so the lease only
        covers the attempt itself and never the wait for a slot.

        Returns:
            The ledger row written, or None when the job was already claimed,
            finished, or cancelled.
        """
        async with self._slots:
            if not await self._claim(job_id, attempt_number, utcnow()):
                logger.debug("Job %d attempt %d is stale, dropping", job_id, attempt_number)
                return None

            async with self._datastore.session() as session:
                job = await session.get(DeliveryJob, job_id)
                notification = (
                    await session.get(Notification, job.notification_id) if job else None
                )
                event = await session.get(Event, job.event_id) if job else None
            if job is None:
                return None
            if notification is None or event is None:
                await self._cancel(job, "endpoint or event no longer exists")
                return None
            if notification.is_deleted or not notification.is_active:
                await self._cancel(job, "endpoint deactivated")
                return None

            payload = format_payload(event, notification)
            http_status: int | None = None
            error: DeliveryError | None = None
            start = time.monotonic()
            try:
                http_status = await self._post(notification, payload)
            except DeliveryError as exc:
                error = exc
                http_status = exc.http_status
            duration_ms = int((time.monotonic() - start) * 1000)

        return await self._record(
            job,
            notification,
            attempt_number=attempt_number,
            http_status=http_status,
            error=error,
            duration_ms=duration_ms,
        )

    async def _record(
        self,
        job: DeliveryJob,
        notification: Notification,
        *,
        attempt_number: int,
        http_status: int | None,
        error: DeliveryError | None,
        duration_ms: int,
    ) -> DeliveryAttempt | None:
        """Write the ledger row and move the job on, in one transaction."""
        now = utcnow()
        next_retry_at: datetime | None = None
        job_values: dict[str, Any] = {"claimed_until": None}

        if error is None:
            status = AttemptStatus.SUCCEEDED
            outcome = "succeeded"
            job_values.update(status=JobStatus.SUCCEEDED, last_error=None)
        elif error.retryable and self._policy.should_retry(attempt_number):
            status = AttemptStatus.PENDING
            outcome = "retry"
            delay = self._policy.delay_for(attempt_number, self._rng)
            next_retry_at = now + timedelta(seconds=delay)
            job_values.update(
                status=JobStatus.PENDING,
                attempt_number=attempt_number + 1,
                next_attempt_at=next_retry_at,
                last_error=_truncate_error(error.message),
            )
        else:
            status = AttemptStatus.FAILED
            outcome = "failed"
            job_values.update(status=JobStatus.FAILED, last_error=_truncate_error(error.message))

        attempt = DeliveryAttempt(
            event_id=job.event_id,
            notification_id=job.notification_id,
            attempt_number=attempt_number,
            status=status,
            http_status=http_status,
            error=_truncate_error(error.message) if error else None,
            attempted_at=now,
            next_retry_at=next_retry_at,
            duration_ms=duration_ms,
        )
        transition = (
            update(DeliveryJob)
            .where(
                DeliveryJob.id == job.id,
                DeliveryJob.status == JobStatus.IN_FLIGHT,
                DeliveryJob.attempt_number == attempt_number,
            )
            .values(**job_values)
        )

        async with self._datastore.session() as session:
            result = await session.execute(transition)
            if result.rowcount != 1:  # type: ignore[attr-defined]
                await session.rollback()
                logger.warning(
                    "Job %d attempt %d lost its lease before it could be recorded",
                    job.id,
                    attempt_number,
                )
                return None
            session.add(attempt)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(
                    "Attempt %d of job %d already recorded, skipping", attempt_number, job.id
                )
                return None

        if self._metrics:
            self._metrics.delivery_attempt(notification.notification_type, outcome)
        if error is None:
            logger.debug("Delivered event %s to %s", job.event_id, notification.id)
        else:
            logger.warning(
                "Delivery of event %s to %s failed (attempt %d, %s): %s",
                job.event_id,
                notification.id,
                attempt_number,
                outcome,
                error.message,
            )
        return attempt

    # -- Retry sweep --

    async def sweep(self, now: datetime | None = None) -> int:
        """Lease and enqueue jobs that are due.

        Picks up ``pending`` jobs whose ``next_attempt_at`` has passed and
        whose lease (if any) expired, plus ``in_flight`` jobs whose lease
        expired without a recorded outcome.

        Returns:
            The number of jobs enqueued.
        """
        if not self._running:
            return 0
        await self.prune_idle_lanes()
        now = now or utcnow()
        due = or_(
            and_(
                DeliveryJob.status == JobStatus.PENDING,
                DeliveryJob.next_attempt_at <= now,
                or_(DeliveryJob.claimed_until.is_(None), DeliveryJob.claimed_until <= now),
            ),
            and_(
                DeliveryJob.status == JobStatus.IN_FLIGHT,
                DeliveryJob.claimed_until <= now,
            ),
        )
        stmt = (
            select(DeliveryJob)
            .where(due)
            .order_by(DeliveryJob.next_attempt_at, DeliveryJob.id)
            .limit(self._config.sweep_batch_size)
        )

        leased: list[DeliveryJob] = []
        async with self._datastore.session() as session:
            candidates = (await session.execute(stmt)).scalars().all()
            for job in candidates:
                lease = (
                    update(DeliveryJob)
                    .where(
                        DeliveryJob.id == job.id,
                        DeliveryJob.status == job.status,
                        DeliveryJob.attempt_number == job.attempt_number,
                    )
                    .values(status=JobStatus.PENDING, claimed_until=self.lease_until(now))
                )
                result = await session.execute(lease)
                if result.rowcount == 1:  # type: ignore[attr-defined]
                    leased.append(job)
            await session.commit()

        return self.enqueue(leased)

    # -- Connectivity test --

    async def send_test(self, notification: Notification) -> SendTestResult:
        """POST a synthetic event to *notification* once, without retries."""
        now = utcnow()
        event = Event(
            id=str(uuid.uuid4()),
            account_id=notification.account_id,
            node_id="",
            node_alias="",
            event_type=TEST_EVENT_TYPE,
            severity=EventSeverity.INFO,
            title="NodeGaze test notification",
            description=f"Test message for notification '{notification.name}'.",
            data={"test": True},
            timestamp=now,
            created_at=now,
        )
        payload = format_payload(event, notification)
        start = time.monotonic()
        try:
            async with self._slots:
                status = await self._post(notification, payload)
        except DeliveryError as exc:
            return SendTestResult(
                success=False,
                http_status=exc.http_status,
                error=_truncate_error(exc.message),
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        return SendTestResult(
            success=True,
            http_status=status,
            error=None,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
