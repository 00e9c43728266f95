"""Event store — ingestion, publication and queries over node events."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError

from nodegaze.engine.models.base import ID_LENGTH, LABEL_LENGTH, NODE_ID_LENGTH, utcnow
from nodegaze.engine.models.delivery import DeliveryJob, JobStatus
from nodegaze.engine.models.event import Event, EventSeverity, EventType
from nodegaze.errors.gaze_errors import DuplicateError, NotFoundError, ValidationError
from nodegaze.notifications.matcher import match

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy import Select

    from nodegaze.engine.client import NodeGazeEngine

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 500


@dataclass
class NewEvent:
    """A normalized event as handed over by a node adapter."""

    account_id: str
    event_type: str
    severity: str
    title: str
    timestamp: datetime
    description: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    node_id: str = ""
    node_alias: str = ""
    idempotency_key: str | None = None


@dataclass
class EventFilter:
    """Optional narrowing of event queries. ``None`` means no constraint."""

    event_type: str | None = None
    severity: str | None = None
    node_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None


@dataclass
class EventPage:
    """One page of events plus the cursor for the next one (None at the end)."""

    items: list[Event]
    next_page_token: str | None = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def encode_page_token(event: Event) -> str:
    raw = json.dumps({"ts": _as_utc(event.timestamp).isoformat(), "id": event.id})
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_page_token(token: str) -> tuple[datetime, str]:
    """Parse a cursor produced by :func:`encode_page_token`.

    Raises:
        ValidationError: If the token is malformed.
    """
    try:
        raw = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))
        return _as_utc(datetime.fromisoformat(raw["ts"])), str(raw["id"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        msg = "invalid page token"
        raise ValidationError(msg, code="invalid-page-token") from e


def _apply_filters(stmt: Select, account_id: str, filters: EventFilter | None) -> Select:
    stmt = stmt.where(Event.account_id == account_id)
    if filters is None:
        return stmt
    if filters.event_type:
        stmt = stmt.where(Event.event_type == filters.event_type)
    if filters.severity:
        stmt = stmt.where(Event.severity == filters.severity)
    if filters.node_id:
        stmt = stmt.where(Event.node_id == filters.node_id)
    if filters.start is not None:
        stmt = stmt.where(Event.timestamp >= _as_utc(filters.start))
    if filters.end is not None:
        stmt = stmt.where(Event.timestamp <= _as_utc(filters.end))
    return stmt


class EventService:
    """Business logic for the append-only event store.

    - ``ingest`` validates and persists one event
    - ``publish`` additionally matches endpoints, persists one delivery job
      per match in the same transaction and hands the jobs to the dispatcher
    - ``list`` / ``list_page`` / ``count`` / ``severity_stats`` serve queries
    """

    def __init__(self, engine: NodeGazeEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    @staticmethod
    def build(new_event: NewEvent) -> Event:
        """Validate *new_event* and turn it into an unsaved :class:`Event`.

        Raises:
            ValidationError: On a missing required field, an over-long value or an
                unknown enum value.
        """
        if not new_event.account_id:
            msg = "account_id is required"
            raise ValidationError(msg)
        if not new_event.title:
            msg = "title is required"
            raise ValidationError(msg)
        if new_event.event_type not in set(EventType):
            msg = f"unknown event_type: {new_event.event_type!r}"
            raise ValidationError(msg)
        if new_event.severity not in set(EventSeverity):
            msg = f"unknown severity: {new_event.severity!r}"
            raise ValidationError(msg)
        if not isinstance(new_event.data, dict):
            msg = "data must be a JSON object"
            raise ValidationError(msg)
        if new_event.idempotency_key is not None and not new_event.idempotency_key:
            msg = "idempotency_key must not be empty"
            raise ValidationError(msg)
        if not isinstance(new_event.timestamp, datetime):
            msg = "timestamp is required"
            raise ValidationError(msg)
        for name, value, limit in (
            ("account_id", new_event.account_id, ID_LENGTH),
            ("node_id", new_event.node_id, NODE_ID_LENGTH),
            ("node_alias", new_event.node_alias, LABEL_LENGTH),
            ("title", new_event.title, LABEL_LENGTH),
            ("idempotency_key", new_event.idempotency_key or "", LABEL_LENGTH),
        ):
            if len(value) > limit:
                msg = f"{name} is longer than {limit} characters"
                raise ValidationError(msg)

        now = utcnow()
        return Event(
            id=str(uuid.uuid4()),
            account_id=new_event.account_id,
            node_id=new_event.node_id,
            node_alias=new_event.node_alias,
            event_type=str(EventType(new_event.event_type)),
            severity=str(EventSeverity(new_event.severity)),
            title=new_event.title,
            description=new_event.description,
            data=dict(new_event.data),
            timestamp=_as_utc(new_event.timestamp),
            created_at=now,
            idempotency_key=new_event.idempotency_key,
        )

    async def _check_duplicate(self, account_id: str, idempotency_key: str | None) -> None:
        if idempotency_key is None:
            return
        async with self._engine.datastore.session() as session:
            existing = await session.scalar(
                select(Event.id).where(
                    Event.account_id == account_id,
                    Event.idempotency_key == idempotency_key,
                )
            )
        if existing is not None:
            msg = f"idempotency key already used by event {existing}"
            raise DuplicateError(msg)

    async def ingest(self, new_event: NewEvent) -> str:
        """Validate and persist an event without scheduling deliveries.

        Returns:
            The generated event id.

        Raises:
            ValidationError: If the event is malformed.
            DuplicateError: If the account already used the idempotency key.
        """
        event = self.build(new_event)
        await self._check_duplicate(event.account_id, event.idempotency_key)
        async with self._engine.datastore.session() as session:
            session.add(event)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                msg = "idempotency key already used"
                raise DuplicateError(msg) from e

        self._count_ingested(event)
        return event.id

    async def publish(self, new_event: NewEvent) -> Event:
        """Persist an event together with its delivery jobs, then dispatch them.

        The event and one ``pending`` job per matched endpoint are committed
        atomically, so a crash after commit loses no deliveries: the retry
        sweep finds every job that never reached a lane.

        Raises:
            ValidationError: If the event is malformed.
            DuplicateError: If the account already used the idempotency key.
        """
        event = self.build(new_event)
        await self._check_duplicate(event.account_id, event.idempotency_key)

        endpoints = await match(event, self._engine.notification_service)
        dispatcher = self._engine.delivery if self._engine.has_delivery else None
        lease = dispatcher.lease_until() if dispatcher and dispatcher.is_running else None

        jobs = [
            DeliveryJob(
                event_id=event.id,
                notification_id=endpoint.id,
                account_id=event.account_id,
                status=JobStatus.PENDING,
                attempt_number=1,
                next_attempt_at=event.created_at,
                claimed_until=lease,
            )
            for endpoint in endpoints
        ]

        async with self._engine.datastore.session() as session:
            session.add(event)
            try:
                # The jobs reference the event, so it has to hit the table first.
                await session.flush()
                session.add_all(jobs)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                msg = "idempotency key already used"
                raise DuplicateError(msg) from e

        self._count_ingested(event)
        logger.info(
            "Event %s (%s) for account %s matched %d endpoints",
            event.id,
            event.event_type,
            event.account_id,
            len(jobs),
        )
        if dispatcher is not None and lease is not None:
            dispatcher.enqueue(jobs)
        return event

    def _count_ingested(self, event: Event) -> None:
        metrics = self._engine.metrics
        if metrics is not None:
            metrics.event_ingested(event.event_type)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get(self, event_id: str, account_id: str | None = None) -> Event:
        """Fetch one event, optionally scoped to *account_id*.

        Raises:
            NotFoundError: If the id is unknown or belongs to another account.
        """
        async with self._engine.datastore.session() as session:
            event = await session.get(Event, event_id)
        if event is None or (account_id is not None and event.account_id != account_id):
            raise NotFoundError("Event", event_id)
        return event

    async def list(
        self,
        account_id: str,
        filters: EventFilter | None = None,
        page_token: str | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> EventPage:
        """Keyset-paginated listing, newest first (``timestamp`` desc, ``id`` desc).

        Raises:
            ValidationError: On a malformed page token or an out-of-range limit.
        """
        if not 1 <= limit <= MAX_LIMIT:
            msg = f"limit must be between 1 and {MAX_LIMIT}"
            raise ValidationError(msg)

        stmt = _apply_filters(select(Event), account_id, filters)
        if page_token:
            ts, last_id = decode_page_token(page_token)
            stmt = stmt.where(
                or_(
                    Event.timestamp < ts,
                    and_(Event.timestamp == ts, Event.id < last_id),
                )
            )
        stmt = stmt.order_by(Event.timestamp.desc(), Event.id.desc()).limit(limit + 1)

        async with self._engine.datastore.session() as session:
            rows = list((await session.execute(stmt)).scalars().all())

        items = rows[:limit]
        next_token = encode_page_token(items[-1]) if len(rows) > limit else None
        return EventPage(items=items, next_page_token=next_token)

    async def iter_events(
        self,
        account_id: str,
        filters: EventFilter | None = None,
        *,
        batch_size: int = DEFAULT_LIMIT,
    ) -> AsyncIterator[Event]:
        """Iterate over every matching event, fetching one page at a time."""
        token: str | None = None
        while True:
            page = await self.list(account_id, filters, token, batch_size)
            for event in page.items:
                yield event
            if page.next_page_token is None:
                return
            token = page.next_page_token

    async def list_page(
        self,
        account_id: str,
        filters: EventFilter | None = None,
        *,
        page: int = 1,
        per_page: int = 20,
    ) -> list[Event]:
        """Offset pagination for the dashboard (1-based *page*)."""
        if page < 1 or not 1 <= per_page <= MAX_LIMIT:
            msg = "page must be >= 1 and per_page between 1 and 500"
            raise ValidationError(msg)
        stmt = (
            _apply_filters(select(Event), account_id, filters)
            .order_by(Event.timestamp.desc(), Event.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        async with self._engine.datastore.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def count(self, account_id: str, filters: EventFilter | None = None) -> int:
        stmt = _apply_filters(select(func.count(Event.id)), account_id, filters)
        async with self._engine.datastore.session() as session:
            return (await session.scalar(stmt)) or 0

    async def severity_stats(self, account_id: str) -> dict[str, int]:
        """Event counts per severity for *account_id* (every severity present)."""
        stmt = (
            select(Event.severity, func.count(Event.id))
            .where(Event.account_id == account_id)
            .group_by(Event.severity)
        )
        async with self._engine.datastore.session() as session:
            rows = (await session.execute(stmt)).all()
        stats = {str(severity): 0 for severity in EventSeverity}
        for severity, count in rows:
            stats[severity] = count
        return stats
