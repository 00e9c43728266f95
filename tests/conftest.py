"""Shared test fixtures for the NodeGaze test suite."""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from typing import TYPE_CHECKING

import httpx
import pytest

from nodegaze.config.settings import (
    AppConfig,
    DatabaseConfig,
    DatabaseEngine,
    DeliveryConfig,
    TaskConfig,
)
from nodegaze.engine.client import NodeGazeEngine
from nodegaze.engine.models.base import utcnow
from nodegaze.engine.services.event_service import NewEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

WEBHOOK_URL = "https://hooks.example.com/nodegaze"
DISCORD_URL = "https://discord.com/api/webhooks/123/abc"


class ScriptedEndpoints:
    """``httpx.MockTransport`` handler with per-URL scripted outcomes.

    Each URL answers with its scripted outcomes in order; the last one
    repeats. An outcome is an HTTP status code or an exception instance to
    raise. Unscripted URLs answer 200.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._scripts: dict[str, list[int | Exception]] = defaultdict(list)

    def script(self, url: str, *outcomes: int | Exception) -> None:
        self._scripts[url] = list(outcomes)

    def to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == url]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        script = self._scripts.get(str(request.url))
        outcome: int | Exception = 200
        if script:
            outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _make_config(tmp_path: Path, **delivery: object) -> AppConfig:
    """File-backed SQLite config with cron jobs off so tests drive the sweep."""
    delivery.setdefault("per_endpoint_concurrency", 1)
    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'nodegaze-test.db'}",
        ),
        delivery=DeliveryConfig(**delivery),
        task=TaskConfig(enabled=False),
    )


def _new_event(account_id: str = "acct-1", **overrides: object) -> NewEvent:
    fields: dict[str, object] = {
        "account_id": account_id,
        "event_type": "InvoiceSettled",
        "severity": "Info",
        "title": "Invoice settled",
        "timestamp": utcnow(),
        "description": "Invoice for 21000 sats settled",
        "data": {"amount_sat": 21000, "payment_hash": "ab" * 32},
        "node_id": "03" + "cd" * 32,
        "node_alias": "alice-node",
    }
    fields.update(overrides)
    return NewEvent(**fields)  # type: ignore[arg-type]


async def _drain(engine: NodeGazeEngine, *, rounds: int = 20) -> None:
    """Run lanes and retry sweeps until no job is due, whatever its backoff."""
    dispatcher = engine.delivery
    await dispatcher.wait_idle()
    for _ in range(rounds):
        enqueued = await dispatcher.sweep(now=utcnow() + timedelta(days=1))
        if not enqueued:
            return
        await dispatcher.wait_idle()


@pytest.fixture
def endpoints() -> ScriptedEndpoints:
    return ScriptedEndpoints()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Provide a test AppConfig with safe defaults."""
    return _make_config(tmp_path)


@pytest.fixture
async def engine(app_config: AppConfig, endpoints: ScriptedEndpoints) -> AsyncIterator:
    """An initialized engine whose outbound HTTP goes to ``endpoints``."""
    eng = NodeGazeEngine(app_config, transport=endpoints.transport())
    await eng.initialize()
    yield eng
    await eng.close()


@pytest.fixture
def config_factory(tmp_path: Path):
    """Build an AppConfig with custom ``delivery`` settings."""
    return lambda **delivery: _make_config(tmp_path, **delivery)


@pytest.fixture
def event_factory():
    """Build a valid :class:`NewEvent`; keyword overrides replace fields."""
    return _new_event


@pytest.fixture
def drain():
    """Coroutine function that runs deliveries and retries to completion."""
    return _drain
