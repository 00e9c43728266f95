"""Tests for the notification registry service."""

from __future__ import annotations

import pytest

from nodegaze.engine.services.notification_service import validate_url
from nodegaze.errors import NotFoundError, ValidationError

WEBHOOK_URL = "https://hooks.example.com/nodegaze"
DISCORD_URL = "https://discord.com/api/webhooks/123/abc"


class TestValidateUrl:
    @pytest.mark.parametrize(
        ("notification_type", "url"),
        [
            ("Webhook", "https://example.com/hook"),
            ("Discord", DISCORD_URL),
            ("Discord", "https://discordapp.com/api/webhooks/1/x"),
        ],
    )
    def test_accepts(self, notification_type: str, url: str) -> None:
        validate_url(notification_type, url)

    @pytest.mark.parametrize(
        ("notification_type", "url"),
        [
            ("Webhook", "http://example.com/hook"),
            ("Webhook", "https://"),
            ("Webhook", "ftp://example.com"),
            ("Discord", "https://example.com/api/webhooks/1/x"),
            ("Discord", "https://discord.com/channels/1"),
        ],
    )
    def test_rejects(self, notification_type: str, url: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_url(notification_type, url)
        assert exc_info.value.code == "invalid-url"

    def test_unknown_channel(self) -> None:
        with pytest.raises(ValidationError):
            validate_url("Slack", "https://hooks.slack.com/x")


class TestRegister:
    async def test_register_defaults(self, engine) -> None:
        n = await engine.notification_service.register(
            "acct-1", "user-1", "  ops  ", "Webhook", WEBHOOK_URL
        )
        assert n.name == "ops"
        assert n.is_active
        assert n.secret is None
        assert n.subscribed_types is None
        assert await engine.notification_service.get(n.id) is not None

    async def test_register_with_subscription(self, engine) -> None:
        n = await engine.notification_service.register(
            "acct-1",
            "user-1",
            "channels",
            "Discord",
            DISCORD_URL,
            secret="s",
            subscribed_types=["ChannelOpened", "ChannelOpened", "ChannelClosed"],
        )
        assert n.subscribed_types == ["ChannelOpened", "ChannelClosed"]
        assert n.secret == "s"

    @pytest.mark.parametrize(
        "args",
        [
            ("", "user-1", "n", "Webhook", WEBHOOK_URL),
            ("acct-1", "user-1", " ", "Webhook", WEBHOOK_URL),
            ("acct-1", "user-1", "n", "Discord", WEBHOOK_URL),
            ("acct-1", "user-1", "n", "Email", WEBHOOK_URL),
            ("a" * 65, "user-1", "n", "Webhook", WEBHOOK_URL),
            ("acct-1", "u" * 65, "n", "Webhook", WEBHOOK_URL),
            ("acct-1", "user-1", "n" * 256, "Webhook", WEBHOOK_URL),
        ],
    )
    async def test_register_invalid(self, engine, args: tuple) -> None:
        with pytest.raises(ValidationError):
            await engine.notification_service.register(*args)

    async def test_unknown_subscribed_type(self, engine) -> None:
        with pytest.raises(ValidationError):
            await engine.notification_service.register(
                "acct-1", "u", "n", "Webhook", WEBHOOK_URL, subscribed_types=["Nope"]
            )


class TestQueries:
    async def test_get_other_account(self, engine) -> None:
        n = await engine.notification_service.register("acct-1", "u", "n", "Webhook", WEBHOOK_URL)
        with pytest.raises(NotFoundError) as exc_info:
            await engine.notification_service.get(n.id, account_id="acct-2")
        assert exc_info.value.code == "notification-not-found"

    async def test_list_and_list_active(self, engine) -> None:
        svc = engine.notification_service
        a = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        b = await svc.register("acct-1", "u", "b", "Discord", DISCORD_URL)
        c = await svc.register("acct-1", "u", "c", "Webhook", WEBHOOK_URL + "/c")
        await svc.register("acct-2", "u", "other", "Webhook", WEBHOOK_URL)
        await svc.deactivate(b.id)
        await svc.delete(c.id)

        assert [n.id for n in await svc.list("acct-1")] == [a.id, b.id]
        assert [n.id for n in await svc.list_active("acct-1")] == [a.id]


class TestUpdate:
    async def test_update_fields(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL, secret="old")
        updated = await svc.update(
            n.id,
            name="renamed",
            url=WEBHOOK_URL + "/v2",
            secret=None,
            subscribed_types=["InvoiceSettled"],
        )
        assert updated.name == "renamed"
        assert updated.url == WEBHOOK_URL + "/v2"
        assert updated.secret is None
        assert updated.subscribed_types == ["InvoiceSettled"]

        reloaded = await svc.get(n.id)
        assert reloaded.name == "renamed"

    async def test_omitted_fields_unchanged(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register(
            "acct-1", "u", "a", "Webhook", WEBHOOK_URL, secret="keep",
            subscribed_types=["ChannelOpened"],
        )
        updated = await svc.update(n.id, name="b")
        assert updated.secret == "keep"
        assert updated.subscribed_types == ["ChannelOpened"]

    async def test_update_validates_url_for_channel(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "d", "Discord", DISCORD_URL)
        with pytest.raises(ValidationError):
            await svc.update(n.id, url=WEBHOOK_URL)

    async def test_update_rejects_long_name(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        with pytest.raises(ValidationError):
            await svc.update(n.id, name="n" * 256)
        assert (await svc.get(n.id)).name == "a"

    async def test_activate_deactivate(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        assert not (await svc.deactivate(n.id)).is_active
        assert (await svc.activate(n.id)).is_active

    async def test_update_other_account(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        with pytest.raises(NotFoundError):
            await svc.update(n.id, account_id="acct-2", name="x")


class TestDelete:
    async def test_soft_delete(self, engine) -> None:
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        await svc.delete(n.id)
        with pytest.raises(NotFoundError):
            await svc.get(n.id)
        with pytest.raises(NotFoundError):
            await svc.delete(n.id)
        with pytest.raises(NotFoundError):
            await svc.activate(n.id)

    async def test_delete_keeps_history(self, engine, event_factory, drain) -> None:
        """Ledger rows survive the endpoint's deletion."""
        svc = engine.notification_service
        n = await svc.register("acct-1", "u", "a", "Webhook", WEBHOOK_URL)
        event = await engine.event_service.publish(event_factory())
        await drain(engine)
        await svc.delete(n.id)

        rows = await engine.ledger_service.history(event.id)
        assert [r.status for r in rows] == ["Succeeded"]
