"""Delivery ledger — append-only record of every delivery attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import IntegrityError

from nodegaze.engine.models.delivery import AttemptStatus, DeliveryAttempt, DeliveryJob, JobStatus
from nodegaze.engine.models.event import Event
from nodegaze.errors.gaze_errors import DuplicateError

if TYPE_CHECKING:
    from nodegaze.engine.client import NodeGazeEngine


@dataclass(frozen=True)
class DeliveryStatus:
    """Per-endpoint summary: one count per (event, endpoint) pair."""

    succeeded_count: int = 0
    failed_count: int = 0
    pending_count: int = 0
    cancelled_count: int = 0

    @property
    def total(self) -> int:
        return (
            self.succeeded_count + self.failed_count + self.pending_count + self.cancelled_count
        )


class LedgerService:
    """Reads and appends over ``delivery_attempts``.

    Rows are never updated; the latest row of a pair (highest
    ``attempt_number``) is the pair's current outcome.
    """

    def __init__(self, engine: NodeGazeEngine) -> None:
        self._engine = engine

    async def record(self, attempt: DeliveryAttempt) -> DeliveryAttempt:
        """Append one attempt row.

        Raises:
            DuplicateError: If the pair already has a row with that attempt number.
        """
        async with self._engine.datastore.session() as session:
            session.add(attempt)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                msg = (
                    f"attempt {attempt.attempt_number} already recorded for "
                    f"event {attempt.event_id} / notification {attempt.notification_id}"
                )
                raise DuplicateError(msg) from e
        return attempt

    async def status_for(self, notification_id: str) -> DeliveryStatus:
        """Classify every pair of *notification_id* by its latest ledger row.

        Pairs whose job is queued but has no attempt yet count as pending.
        A pair whose job was cancelled counts as cancelled unless its latest
        row already settled it as succeeded or failed.
        """
        latest = (
            select(
                DeliveryAttempt.event_id,
                func.max(DeliveryAttempt.attempt_number).label("attempt_number"),
            )
            .where(DeliveryAttempt.notification_id == notification_id)
            .group_by(DeliveryAttempt.event_id)
            .subquery()
        )
        by_status = (
            select(DeliveryAttempt.status, DeliveryJob.status, func.count())
            .join(
                latest,
                and_(
                    DeliveryAttempt.event_id == latest.c.event_id,
                    DeliveryAttempt.attempt_number == latest.c.attempt_number,
                ),
            )
            .outerjoin(
                DeliveryJob,
                and_(
                    DeliveryJob.event_id == DeliveryAttempt.event_id,
                    DeliveryJob.notification_id == DeliveryAttempt.notification_id,
                ),
            )
            .where(DeliveryAttempt.notification_id == notification_id)
            .group_by(DeliveryAttempt.status, DeliveryJob.status)
        )
        no_attempt_yet = (
            select(DeliveryJob.status, func.count(DeliveryJob.id))
            .where(
                DeliveryJob.notification_id == notification_id,
                DeliveryJob.status.in_(
                    [JobStatus.PENDING, JobStatus.IN_FLIGHT, JobStatus.CANCELLED]
                ),
                ~exists().where(
                    DeliveryAttempt.event_id == DeliveryJob.event_id,
                    DeliveryAttempt.notification_id == DeliveryJob.notification_id,
                ),
            )
            .group_by(DeliveryJob.status)
        )

        succeeded = failed = pending = cancelled = 0
        async with self._engine.datastore.session() as session:
            for attempt_status, job_status, count in (await session.execute(by_status)).all():
                if attempt_status == AttemptStatus.SUCCEEDED:
                    succeeded += count
                elif attempt_status == AttemptStatus.FAILED:
                    failed += count
                elif job_status == JobStatus.CANCELLED:
                    cancelled += count
                else:
                    pending += count
            for job_status, count in (await session.execute(no_attempt_yet)).all():
                if job_status == JobStatus.CANCELLED:
                    cancelled += count
                else:
                    pending += count

        return DeliveryStatus(
            succeeded_count=succeeded,
            failed_count=failed,
            pending_count=pending,
            cancelled_count=cancelled,
        )

    async def history(
        self, event_id: str, notification_id: str | None = None
    ) -> list[DeliveryAttempt]:
        """All attempts for an event, optionally for a single endpoint."""
        stmt = select(DeliveryAttempt).where(DeliveryAttempt.event_id == event_id)
        if notification_id is not None:
            stmt = stmt.where(DeliveryAttempt.notification_id == notification_id)
        stmt = stmt.order_by(DeliveryAttempt.attempt_number, DeliveryAttempt.notification_id)
        async with self._engine.datastore.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def events_for_notification(
        self, notification_id: str, *, limit: int = 20, offset: int = 0
    ) -> list[Event]:
        """Events routed to an endpoint, newest first."""
        stmt = (
            select(Event)
            .join(DeliveryJob, DeliveryJob.event_id == Event.id)
            .where(DeliveryJob.notification_id == notification_id)
            .order_by(Event.timestamp.desc(), Event.id.desc())
            .offset(offset)
            .limit(limit)
        )
        async with self._engine.datastore.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def count_events_for_notification(self, notification_id: str) -> int:
        stmt = select(func.count(DeliveryJob.id)).where(
            DeliveryJob.notification_id == notification_id
        )
        async with self._engine.datastore.session() as session:
            return (await session.scalar(stmt)) or 0
