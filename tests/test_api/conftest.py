"""Fixtures for route tests against a mocked engine."""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from nodegaze.api.app import create_app
from nodegaze.config.settings import AppConfig, DatabaseConfig, DatabaseEngine

NOW = datetime(2025, 7, 1, 10, 0, tzinfo=UTC)
INTERNAL_TOKEN = "internal-test-token"  # noqa: S105

CALLER_HEADERS = {"x-account-id": "acct-1", "x-user-id": "user-1"}


def make_event_record(event_id: str = "e-1", **overrides):
    fields = {
        "id": event_id,
        "account_id": "acct-1",
        "node_id": "03abc",
        "node_alias": "alice-node",
        "event_type": "InvoiceSettled",
        "severity": "Info",
        "title": "Invoice settled",
        "description": "",
        "data": {"amount_sat": 1000},
        "timestamp": NOW,
        "created_at": NOW,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_notification_record(notification_id: str = "n-1", **overrides):
    fields = {
        "id": notification_id,
        "account_id": "acct-1",
        "user_id": "user-1",
        "name": "ops",
        "notification_type": "Webhook",
        "url": "https://hooks.example.com/x",
        "secret": None,
        "is_active": True,
        "subscribed_types": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _mock_engine() -> MagicMock:
    engine = MagicMock()
    engine.event_service = AsyncMock()
    engine.notification_service = AsyncMock()
    engine.ledger_service = AsyncMock()
    engine.delivery = MagicMock()
    engine.delivery.send_test = AsyncMock()
    engine.has_delivery = True
    engine.health_check = AsyncMock(
        return_value={"engine": "ok", "datastore": "ok", "cache": "ok", "delivery": "ok"},
    )
    return engine


@pytest.fixture
def api_client():
    """A test client with a mock engine on ``app.state`` (lifespan not run)."""
    config = AppConfig(
        internal_token=INTERNAL_TOKEN,
        db=DatabaseConfig(engine=DatabaseEngine.SQLITE, dsn="sqlite+aiosqlite:///:memory:"),
    )
    app = create_app(config=config)
    engine = _mock_engine()
    app.state.engine = engine
    client = TestClient(app, raise_server_exceptions=False)
    return client, engine


@pytest.fixture
def event_record():
    """Factory for event-like records served by the mocked services."""
    return make_event_record


@pytest.fixture
def notification_record():
    """Factory for notification-like records served by the mocked services."""
    return make_notification_record
