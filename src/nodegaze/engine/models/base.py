"""Base model, UTC datetime column type, and shared mixins."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, TypeDecorator, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Column widths shared by the models and the input checks in front of them
ID_LENGTH = 64
NODE_ID_LENGTH = 128
LABEL_LENGTH = 255


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(tz=UTC)


class UTCDateTime(TypeDecorator):
    """``DateTime(timezone=True)`` that always hands back aware UTC values.

    SQLite drops tzinfo on storage; values read back are re-tagged as UTC and
    values written are converted to UTC first, so comparisons are consistent
    across backends.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    type_annotation_map = {  # noqa: RUF012
        dict[str, Any]: JSON,
        datetime: UTCDateTime,
    }


class TimestampMixin:
    """Created / updated / soft-deleted timestamps."""

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True, default=None)


def make_append_only(model: type[Base]) -> None:
    """Reject ORM-level UPDATEs of *model* rows."""

    @event.listens_for(model, "before_update")
    def _reject_update(_mapper: Any, _connection: Any, target: Any) -> None:
        msg = f"{type(target).__name__} rows are immutable"
        raise RuntimeError(msg)
