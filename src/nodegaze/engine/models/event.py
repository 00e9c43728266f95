"""Event model — immutable record of something that happened on a node."""

from __future__ import annotations

import enum
from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from typing import Any

from sqlalchemy import JSON, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from nodegaze.engine.models.base import (
    ID_LENGTH,
    LABEL_LENGTH,
    NODE_ID_LENGTH,
    Base,
    make_append_only,
    utcnow,
)


class EventType(enum.StrEnum):
    """Normalized Lightning node event types."""

    INVOICE_CREATED = "InvoiceCreated"
    INVOICE_SETTLED = "InvoiceSettled"
    INVOICE_CANCELLED = "InvoiceCancelled"
    INVOICE_ACCEPTED = "InvoiceAccepted"
    CHANNEL_OPENED = "ChannelOpened"
    CHANNEL_CLOSED = "ChannelClosed"


class EventSeverity(enum.StrEnum):
    """How loudly an event should be surfaced."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


class Event(Base):
    """A node event as ingested from a producer.

    Rows are never updated; the ``id`` doubles as the idempotency token
    receivers see on every (re-)delivery.
    """

    __tablename__ = "events"
    __table_args__ = (
        UniqueConstraint("account_id", "idempotency_key", name="uq_events_account_idempotency"),
        Index("ix_events_account_timestamp", "account_id", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, index=True)
    node_id: Mapped[str] = mapped_column(String(NODE_ID_LENGTH), nullable=False, default="")
    node_alias: Mapped[str] = mapped_column(String(LABEL_LENGTH), nullable=False, default="")
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(LABEL_LENGTH), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    idempotency_key: Mapped[str | None] = mapped_column(String(LABEL_LENGTH), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Event id={self.id} type={self.event_type} account={self.account_id}>"


make_append_only(Event)
