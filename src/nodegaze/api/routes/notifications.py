"""Notification endpoint management."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from nodegaze.api.dependencies import get_engine, require_caller
from nodegaze.api.middleware.auth import CallerContext  # noqa: TC001
from nodegaze.api.schemas import (
    DeliveryStatusResponse,
    EventResponse,
    NotificationCreateRequest,
    NotificationEventsResponse,
    NotificationResponse,
    NotificationUpdateRequest,
    SendTestResponse,
)
from nodegaze.engine.client import NodeGazeEngine  # noqa: TC001
from nodegaze.errors.definitions import ErrDeliveryDisabled

router = APIRouter(prefix="/api/notification", tags=["notifications"])


@router.get("")
async def list_notifications(
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> list[NotificationResponse]:
    items = await engine.notification_service.list(ctx.account_id)
    return [NotificationResponse.from_model(n) for n in items]


@router.post("", status_code=201)
async def create_notification(
    body: NotificationCreateRequest,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> NotificationResponse:
    """Register an endpoint for the caller's account."""
    notification = await engine.notification_service.register(
        ctx.account_id,
        ctx.user_id,
        body.name,
        body.notification_type,
        body.url,
        secret=body.secret,
        subscribed_types=body.subscribed_types,
    )
    return NotificationResponse.from_model(notification)


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> NotificationResponse:
    notification = await engine.notification_service.get(
        notification_id, account_id=ctx.account_id
    )
    return NotificationResponse.from_model(notification)


@router.patch("/{notification_id}")
async def update_notification(
    notification_id: str,
    body: NotificationUpdateRequest,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> NotificationResponse:
    """Apply the fields present in the body; explicit nulls clear optional fields."""
    changes = body.model_dump(exclude_unset=True)
    notification = await engine.notification_service.update(
        notification_id, account_id=ctx.account_id, **changes
    )
    return NotificationResponse.from_model(notification)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> Response:
    await engine.notification_service.delete(notification_id, account_id=ctx.account_id)
    return Response(status_code=204)


@router.post("/{notification_id}/activate")
async def activate_notification(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> NotificationResponse:
    notification = await engine.notification_service.activate(
        notification_id, account_id=ctx.account_id
    )
    return NotificationResponse.from_model(notification)


@router.post("/{notification_id}/deactivate")
async def deactivate_notification(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> NotificationResponse:
    notification = await engine.notification_service.deactivate(
        notification_id, account_id=ctx.account_id
    )
    return NotificationResponse.from_model(notification)


@router.get("/{notification_id}/status")
async def notification_status(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> DeliveryStatusResponse:
    """Succeeded / failed / pending / cancelled counts over the endpoint's (event, endpoint) pairs."""
    notification = await engine.notification_service.get(
        notification_id, account_id=ctx.account_id
    )
    status = await engine.ledger_service.status_for(notification.id)
    return DeliveryStatusResponse(
        succeeded_count=status.succeeded_count,
        failed_count=status.failed_count,
        pending_count=status.pending_count,
        cancelled_count=status.cancelled_count,
        total=status.total,
    )


@router.get("/{notification_id}/events")
async def notification_events(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> NotificationEventsResponse:
    """Events routed to this endpoint, newest first."""
    notification = await engine.notification_service.get(
        notification_id, account_id=ctx.account_id
    )
    ledger = engine.ledger_service
    items = await ledger.events_for_notification(
        notification.id, limit=per_page, offset=(page - 1) * per_page
    )
    total = await ledger.count_events_for_notification(notification.id)
    return NotificationEventsResponse(
        items=[EventResponse.model_validate(e) for e in items],
        page=page,
        per_page=per_page,
        total=total,
    )


@router.post("/{notification_id}/test")
async def send_test_notification(
    notification_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> SendTestResponse:
    """Send a one-off test message to the endpoint. Not recorded in the ledger."""
    notification = await engine.notification_service.get(
        notification_id, account_id=ctx.account_id
    )
    if not engine.has_delivery:
        raise ErrDeliveryDisabled
    result = await engine.delivery.send_test(notification)
    return SendTestResponse(
        success=result.success,
        http_status=result.http_status,
        error=result.error,
        duration_ms=result.duration_ms,
    )
