"""Notification registry — CRUD over an account's delivery endpoints."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from nodegaze.engine.models.base import ID_LENGTH, LABEL_LENGTH, utcnow
from nodegaze.engine.models.event import EventType
from nodegaze.engine.models.notification import Notification, NotificationType
from nodegaze.errors.gaze_errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nodegaze.engine.client import NodeGazeEngine

logger = logging.getLogger(__name__)

WEBHOOK_URL_PREFIX = "https://"
DISCORD_URL_PREFIXES = (
    "https://discord.com/api/webhooks/",
    "https://discordapp.com/api/webhooks/",
)

_UNSET: Any = object()


def validate_url(notification_type: str, url: str) -> None:
    """Check *url* against the rules of its channel.

    Raises:
        ValidationError: If the URL is not acceptable for the channel.
    """
    if notification_type == NotificationType.DISCORD:
        if not url.startswith(DISCORD_URL_PREFIXES):
            msg = "Discord webhook URL must start with https://discord.com/api/webhooks/"
            raise ValidationError(msg, code="invalid-url")
    elif notification_type == NotificationType.WEBHOOK:
        if not url.startswith(WEBHOOK_URL_PREFIX) or len(url) <= len(WEBHOOK_URL_PREFIX):
            msg = "Webhook URL must start with https://"
            raise ValidationError(msg, code="invalid-url")
    else:
        msg = f"unknown notification_type: {notification_type!r}"
        raise ValidationError(msg)


def _normalize_types(types: Iterable[str] | None) -> list[str] | None:
    if types is None:
        return None
    normalized: list[str] = []
    for value in types:
        if value not in set(EventType):
            msg = f"unknown event_type in subscribed_types: {value!r}"
            raise ValidationError(msg)
        if value not in normalized:
            normalized.append(str(EventType(value)))
    return normalized


class NotificationService:
    """Business logic for notification endpoints.

    Endpoints are soft-deleted: deleting marks the row and deactivates it,
    so ledger history keeps pointing at a real row.
    """

    def __init__(self, engine: NodeGazeEngine) -> None:
        self._engine = engine

    async def register(
        self,
        account_id: str,
        user_id: str,
        name: str,
        notification_type: str,
        url: str,
        secret: str | None = None,
        subscribed_types: Iterable[str] | None = None,
    ) -> Notification:
        """Create an active endpoint.

        Raises:
            ValidationError: On a bad channel, URL, over-long identifier or
                subscription list.
        """
        if not account_id or not user_id:
            msg = "account_id and user_id are required"
            raise ValidationError(msg)
        if not name or not name.strip():
            msg = "name is required"
            raise ValidationError(msg)
        for field_name, value, limit in (
            ("account_id", account_id, ID_LENGTH),
            ("user_id", user_id, ID_LENGTH),
            ("name", name.strip(), LABEL_LENGTH),
        ):
            if len(value) > limit:
                msg = f"{field_name} is longer than {limit} characters"
                raise ValidationError(msg)
        validate_url(notification_type, url)

        notification = Notification(
            id=str(uuid.uuid4()),
            account_id=account_id,
            user_id=user_id,
            name=name.strip(),
            notification_type=str(NotificationType(notification_type)),
            url=url,
            secret=secret or None,
            is_active=True,
            subscribed_types=_normalize_types(subscribed_types),
        )
        async with self._engine.datastore.session() as session:
            session.add(notification)
            await session.commit()

        logger.info(
            "Registered %s notification %s for account %s",
            notification.notification_type,
            notification.id,
            account_id,
        )
        return notification

    async def get(self, notification_id: str, account_id: str | None = None) -> Notification:
        """Fetch a non-deleted endpoint, optionally scoped to *account_id*.

        Raises:
            NotFoundError: If unknown, deleted, or owned by another account.
        """
        async with self._engine.datastore.session() as session:
            notification = await session.get(Notification, notification_id)
        if (
            notification is None
            or notification.is_deleted
            or (account_id is not None and notification.account_id != account_id)
        ):
            raise NotFoundError("Notification", notification_id)
        return notification

    async def list(self, account_id: str) -> list[Notification]:
        """All non-deleted endpoints of an account, oldest first."""
        stmt = (
            select(Notification)
            .where(Notification.account_id == account_id, Notification.is_deleted.is_(False))
            .order_by(Notification.created_at, Notification.id)
        )
        async with self._engine.datastore.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_active(self, account_id: str) -> list[Notification]:
        """Active, non-deleted endpoints as currently committed."""
        stmt = (
            select(Notification)
            .where(
                Notification.account_id == account_id,
                Notification.is_active.is_(True),
                Notification.is_deleted.is_(False),
            )
            .order_by(Notification.created_at, Notification.id)
        )
        async with self._engine.datastore.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def update(
        self,
        notification_id: str,
        *,
        account_id: str | None = None,
        name: str | None = None,
        url: str | None = None,
        secret: str | None = _UNSET,
        is_active: bool | None = None,
        subscribed_types: Iterable[str] | None = _UNSET,
    ) -> Notification:
        """Change the given fields. The channel type itself is immutable.

        ``secret=None`` clears the secret and ``subscribed_types=None`` means
        every event type; omit them to leave them unchanged.

        Raises:
            NotFoundError: If the endpoint does not exist for the account.
            ValidationError: On a bad URL, name or subscription list.
        """
        async with self._engine.datastore.session() as session:
            notification = await session.get(Notification, notification_id)
            if (
                notification is None
                or notification.is_deleted
                or (account_id is not None and notification.account_id != account_id)
            ):
                raise NotFoundError("Notification", notification_id)

            if name is not None:
                if not name.strip():
                    msg = "name must not be empty"
                    raise ValidationError(msg)
                if len(name.strip()) > LABEL_LENGTH:
                    msg = f"name is longer than {LABEL_LENGTH} characters"
                    raise ValidationError(msg)
                notification.name = name.strip()
            if url is not None:
                validate_url(notification.notification_type, url)
                notification.url = url
            if secret is not _UNSET:
                notification.secret = secret or None
            if is_active is not None:
                notification.is_active = is_active
            if subscribed_types is not _UNSET:
                notification.subscribed_types = _normalize_types(subscribed_types)

            await session.commit()
        return notification

    async def activate(self, notification_id: str, account_id: str | None = None) -> Notification:
        return await self.update(notification_id, account_id=account_id, is_active=True)

    async def deactivate(
        self, notification_id: str, account_id: str | None = None
    ) -> Notification:
        """Stop new deliveries to the endpoint. Attempts already running finish."""
        notification = await self.update(notification_id, account_id=account_id, is_active=False)
        logger.info("Deactivated notification %s", notification_id)
        return notification

    async def delete(self, notification_id: str, account_id: str | None = None) -> None:
        """Soft-delete the endpoint.

        Raises:
            NotFoundError: If the endpoint does not exist for the account.
        """
        async with self._engine.datastore.session() as session:
            notification = await session.get(Notification, notification_id)
            if (
                notification is None
                or notification.is_deleted
                or (account_id is not None and notification.account_id != account_id)
            ):
                raise NotFoundError("Notification", notification_id)
            notification.is_deleted = True
            notification.is_active = False
            notification.deleted_at = utcnow()
            await session.commit()
        logger.info("Deleted notification %s", notification_id)
