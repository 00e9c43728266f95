"""Notification model — an account's delivery endpoint."""

from __future__ import annotations

import enum

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from nodegaze.engine.models.base import ID_LENGTH, LABEL_LENGTH, Base, TimestampMixin


class NotificationType(enum.StrEnum):
    """Delivery channel of a notification endpoint."""

    WEBHOOK = "Webhook"
    DISCORD = "Discord"


class Notification(Base, TimestampMixin):
    """A registered delivery endpoint.

    ``subscribed_types`` of ``None`` means the endpoint receives every event
    type of its account. Rows are soft-deleted so ledger rows keep their
    parent.
    """

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(String(LABEL_LENGTH), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(16), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    subscribed_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True, default=None)

    @property
    def channel(self) -> NotificationType:
        return NotificationType(self.notification_type)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} type={self.notification_type} url={self.url[:30]}>"
