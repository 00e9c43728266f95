"""Event-to-endpoint matching."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nodegaze.engine.models.event import Event
    from nodegaze.engine.models.notification import Notification


class ActiveEndpointSource(Protocol):
    """Anything that can list an account's active endpoints."""

    async def list_active(self, account_id: str) -> list[Notification]: ...


def is_subscribed(notification: Notification, event_type: str) -> bool:
    """``None`` subscriptions mean every event type."""
    types = notification.subscribed_types
    return types is None or event_type in types


def select_endpoints(event: Event, notifications: Iterable[Notification]) -> list[Notification]:
    """Pick the endpoints *event* must be delivered to.

    Keeps active, non-deleted endpoints of the event's own account that
    subscribe to its type. The result is ordered by ``(created_at, id)`` and
    holds each endpoint once.
    """
    selected: dict[str, Notification] = {}
    for notification in notifications:
        if notification.account_id != event.account_id:
            continue
        if not notification.is_active or notification.is_deleted:
            continue
        if not is_subscribed(notification, event.event_type):
            continue
        selected.setdefault(notification.id, notification)
    return sorted(selected.values(), key=lambda n: (n.created_at, n.id))


async def match(event: Event, registry: ActiveEndpointSource) -> list[Notification]:
    """Resolve the endpoints for *event* from the registry's current state."""
    return select_endpoints(event, await registry.list_active(event.account_id))
