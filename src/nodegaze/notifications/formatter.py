"""Channel payload formatting and HMAC signing.

Bodies are serialized with sorted keys and compact separators, so a given
(event, endpoint) pair always yields the same bytes and the same signature
on every retry.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from nodegaze.engine.models.event import EventSeverity
from nodegaze.engine.models.notification import NotificationType

if TYPE_CHECKING:
    from nodegaze.engine.models.event import Event
    from nodegaze.engine.models.notification import Notification

SIGNATURE_HEADER = "X-NodeGaze-Signature"
EVENT_HEADER = "X-NodeGaze-Event"
EVENT_ID_HEADER = "X-NodeGaze-Event-Id"
SIGNATURE_PREFIX = "sha256="

DISCORD_FOOTER = "NodeGaze Lightning Monitor"
DISCORD_TITLE_LIMIT = 256
DISCORD_DESCRIPTION_LIMIT = 4096
DISCORD_FIELD_LIMIT = 1024

SEVERITY_COLORS: dict[str, int] = {
    EventSeverity.INFO: 0x3498DB,
    EventSeverity.WARNING: 0xF1C40F,
    EventSeverity.ERROR: 0xE74C3C,
}


@dataclass(frozen=True)
class Payload:
    """Serialized request body plus the headers to send with it."""

    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.body)


def _dumps(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def compute_signature(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of *body* keyed by *secret*."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, header: str | None) -> bool:
    """Check an ``X-NodeGaze-Signature`` header value in constant time."""
    if not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    expected = compute_signature(secret, body)
    return hmac.compare_digest(expected, header[len(SIGNATURE_PREFIX) :])


def webhook_envelope(event: Event) -> dict[str, Any]:
    """The JSON object POSTed to generic webhooks."""
    return {
        "event_id": event.id,
        "account_id": event.account_id,
        "event_type": event.event_type,
        "severity": event.severity,
        "title": event.title,
        "description": event.description,
        "data": event.data or {},
        "timestamp": event.timestamp.isoformat(),
        "node_id": event.node_id,
        "node_alias": event.node_alias,
    }


def discord_message(event: Event) -> dict[str, Any]:
    """A single-embed Discord webhook message."""
    node = event.node_alias or event.node_id or "unknown"
    embed = {
        "title": _truncate(event.title, DISCORD_TITLE_LIMIT),
        "description": _truncate(event.description, DISCORD_DESCRIPTION_LIMIT),
        "color": SEVERITY_COLORS.get(event.severity, SEVERITY_COLORS[EventSeverity.INFO]),
        "timestamp": event.timestamp.isoformat(),
        "fields": [
            {"name": "Event Type", "value": event.event_type, "inline": True},
            {"name": "Severity", "value": event.severity, "inline": True},
            {"name": "Node", "value": _truncate(node, DISCORD_FIELD_LIMIT), "inline": True},
        ],
        "footer": {"text": DISCORD_FOOTER},
    }
    return {"embeds": [embed]}


def format_payload(event: Event, notification: Notification) -> Payload:
    """Build the request body and headers for delivering *event* to *notification*."""
    if notification.notification_type == NotificationType.DISCORD:
        body = _dumps(discord_message(event))
    else:
        body = _dumps(webhook_envelope(event))

    headers = {
        "Content-Type": "application/json",
        EVENT_HEADER: str(event.event_type),
        EVENT_ID_HEADER: event.id,
    }
    if notification.secret:
        headers[SIGNATURE_HEADER] = SIGNATURE_PREFIX + compute_signature(notification.secret, body)
    return Payload(body=body, headers=headers)
