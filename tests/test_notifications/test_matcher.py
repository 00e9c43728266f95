"""Tests for event-to-endpoint matching."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from nodegaze.engine.models.event import Event
from nodegaze.engine.models.notification import Notification
from nodegaze.notifications.matcher import match, select_endpoints

T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _event(account_id: str = "acct-1", event_type: str = "InvoiceSettled") -> Event:
    return Event(
        id="e-1",
        account_id=account_id,
        event_type=event_type,
        severity="Info",
        title="t",
        timestamp=T0,
    )


def _n(id_: str, *, minutes: int = 0, **overrides: object) -> Notification:
    fields: dict[str, object] = {
        "id": id_,
        "account_id": "acct-1",
        "user_id": "u",
        "name": id_,
        "notification_type": "Webhook",
        "url": "https://example.com/" + id_,
        "is_active": True,
        "is_deleted": False,
        "subscribed_types": None,
        "created_at": T0 + timedelta(minutes=minutes),
    }
    fields.update(overrides)
    return Notification(**fields)


class TestSelectEndpoints:
    def test_active_same_account(self) -> None:
        selected = select_endpoints(_event(), [_n("a"), _n("b", account_id="acct-2")])
        assert [n.id for n in selected] == ["a"]

    def test_skips_inactive_and_deleted(self) -> None:
        endpoints = [_n("a", is_active=False), _n("b", is_deleted=True), _n("c")]
        assert [n.id for n in select_endpoints(_event(), endpoints)] == ["c"]

    def test_subscription_filter(self) -> None:
        endpoints = [
            _n("all"),
            _n("settled", subscribed_types=["InvoiceSettled"]),
            _n("channels", subscribed_types=["ChannelOpened", "ChannelClosed"]),
            _n("nothing", subscribed_types=[]),
        ]
        selected = select_endpoints(_event(), endpoints)
        assert [n.id for n in selected] == ["all", "settled"]

    def test_ordered_by_created_at_then_id(self) -> None:
        endpoints = [_n("z", minutes=1), _n("b", minutes=0), _n("a", minutes=0)]
        assert [n.id for n in select_endpoints(_event(), endpoints)] == ["a", "b", "z"]

    def test_deduplicates(self) -> None:
        a = _n("a")
        assert [n.id for n in select_endpoints(_event(), [a, a, _n("a")])] == ["a"]

    def test_same_input_same_output(self) -> None:
        endpoints = [_n("c", minutes=2), _n("a"), _n("b", minutes=1)]
        first = select_endpoints(_event(), endpoints)
        second = select_endpoints(_event(), list(reversed(endpoints)))
        assert [n.id for n in first] == [n.id for n in second]


class _Registry:
    def __init__(self, notifications: list[Notification]) -> None:
        self.notifications = notifications
        self.calls: list[str] = []

    async def list_active(self, account_id: str) -> list[Notification]:
        self.calls.append(account_id)
        return self.notifications


class TestMatch:
    async def test_queries_event_account(self) -> None:
        registry = _Registry([_n("a"), _n("b", subscribed_types=["ChannelOpened"])])
        selected = await match(_event(), registry)
        assert [n.id for n in selected] == ["a"]
        assert registry.calls == ["acct-1"]

    async def test_no_side_effects(self) -> None:
        registry = _Registry([_n("a")])
        first = await match(_event(), registry)
        second = await match(_event(), registry)
        assert [n.id for n in first] == [n.id for n in second]
