"""Delivery ledger and durable delivery job models."""

from __future__ import annotations

import enum
from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nodegaze.engine.models.base import ID_LENGTH, Base, make_append_only, utcnow


class AttemptStatus(enum.StrEnum):
    """Outcome recorded on a ledger row.

    ``Pending`` marks a failed attempt with a retry scheduled.
    """

    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class JobStatus(enum.StrEnum):
    """Lifecycle state of a delivery job."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELLED)


class DeliveryAttempt(Base):
    """One row per physical delivery attempt. Append-only."""

    __tablename__ = "delivery_attempts"
    __table_args__ = (
        UniqueConstraint(
            "event_id",
            "notification_id",
            "attempt_number",
            name="uq_delivery_attempts_pair_attempt",
        ),
        Index("ix_delivery_attempts_notification", "notification_id", "event_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    next_retry_at: Mapped[datetime | None] = mapped_column(nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<DeliveryAttempt event={self.event_id} notification={self.notification_id} "
            f"n={self.attempt_number} status={self.status}>"
        )


class DeliveryJob(Base):
    """Durable work item for one (event, endpoint) pair.

    ``id`` is the arrival sequence used for per-endpoint FIFO ordering.
    ``attempt_number`` is the number the *next* attempt will carry.
    """

    __tablename__ = "delivery_jobs"
    __table_args__ = (
        UniqueConstraint("event_id", "notification_id", name="uq_delivery_jobs_pair"),
        Index("ix_delivery_jobs_due", "status", "next_attempt_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=JobStatus.PENDING)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    next_attempt_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    claimed_until: Mapped[datetime | None] = mapped_column(nullable=True)
    last_error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<DeliveryJob id={self.id} event={self.event_id} "
            f"notification={self.notification_id} status={self.status}>"
        )


make_append_only(DeliveryAttempt)
