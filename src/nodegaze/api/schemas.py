"""API request/response schemas (Pydantic models)."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, Field

from nodegaze.engine.models.base import ID_LENGTH, LABEL_LENGTH, NODE_ID_LENGTH

# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error response."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventCreateRequest(BaseModel):
    """A normalized node event submitted by a producer.

    Enum values are checked by the event store so that unknown types get the
    same ``validation-error`` response as any other malformed event.
    ``timestamp`` is when the node action happened and is required; the
    ingestion time is recorded separately as ``created_at``.
    """

    account_id: str = Field(..., min_length=1, max_length=ID_LENGTH)
    event_type: str
    severity: str
    title: str = Field(..., min_length=1, max_length=LABEL_LENGTH)
    timestamp: datetime
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    node_id: str = Field("", max_length=NODE_ID_LENGTH)
    node_alias: str = Field("", max_length=LABEL_LENGTH)
    idempotency_key: str | None = Field(None, min_length=1, max_length=LABEL_LENGTH)


class EventCreatedResponse(BaseModel):
    id: str


class EventResponse(BaseModel):
    """Event as shown on the dashboard."""

    id: str
    account_id: str
    node_id: str
    node_alias: str
    event_type: str
    severity: str
    title: str
    description: str
    data: dict[str, Any]
    timestamp: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryAttemptResponse(BaseModel):
    """One ledger row."""

    notification_id: str
    attempt_number: int
    status: str
    http_status: int | None = None
    error: str | None = None
    attempted_at: datetime
    next_retry_at: datetime | None = None
    duration_ms: int | None = None

    model_config = {"from_attributes": True}


class EventDetailResponse(EventResponse):
    """Event plus its delivery history across all endpoints."""

    deliveries: list[DeliveryAttemptResponse] = Field(default_factory=list)


class EventListResponse(BaseModel):
    items: list[EventResponse]
    page: int
    per_page: int
    total: int


class SeverityStatsResponse(BaseModel):
    """Event counts per severity."""

    info: int = 0
    warning: int = 0
    error: int = 0
    total: int = 0


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationCreateRequest(BaseModel):
    """Register a delivery endpoint."""

    name: str = Field(..., min_length=1, max_length=LABEL_LENGTH)
    notification_type: str
    url: str
    secret: str | None = None
    subscribed_types: list[str] | None = None


class NotificationUpdateRequest(BaseModel):
    """Partial update. ``secret`` and ``subscribed_types`` may be set to null explicitly."""

    name: str | None = Field(None, min_length=1, max_length=LABEL_LENGTH)
    url: str | None = None
    secret: str | None = None
    is_active: bool | None = None
    subscribed_types: list[str] | None = None


class NotificationResponse(BaseModel):
    """Endpoint as returned to the dashboard. The secret itself is never echoed."""

    id: str
    account_id: str
    user_id: str
    name: str
    notification_type: str
    url: str
    is_active: bool
    subscribed_types: list[str] | None = None
    has_secret: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, notification: Any) -> NotificationResponse:
        return cls(
            id=notification.id,
            account_id=notification.account_id,
            user_id=notification.user_id,
            name=notification.name,
            notification_type=notification.notification_type,
            url=notification.url,
            is_active=notification.is_active,
            subscribed_types=notification.subscribed_types,
            has_secret=bool(notification.secret),
            created_at=notification.created_at,
            updated_at=notification.updated_at,
        )


class DeliveryStatusResponse(BaseModel):
    succeeded_count: int
    failed_count: int
    pending_count: int
    cancelled_count: int = 0
    total: int


class NotificationEventsResponse(BaseModel):
    items: list[EventResponse]
    page: int
    per_page: int
    total: int


class SendTestResponse(BaseModel):
    """Result of ``POST /api/notification/{id}/test``."""

    success: bool
    http_status: int | None = None
    error: str | None = None
    duration_ms: int
