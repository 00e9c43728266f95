"""Dashboard event queries."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from nodegaze.api.dependencies import get_engine, require_caller
from nodegaze.api.middleware.auth import CallerContext  # noqa: TC001
from nodegaze.api.schemas import (
    DeliveryAttemptResponse,
    EventDetailResponse,
    EventListResponse,
    EventResponse,
    SeverityStatsResponse,
)
from nodegaze.engine.client import NodeGazeEngine  # noqa: TC001
from nodegaze.engine.services.event_service import EventFilter

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("")
async def list_events(
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
    severity: str | None = None,
    event_type: str | None = None,
    node_id: str | None = None,
) -> EventListResponse:
    """Events of the caller's account, newest first."""
    filters = EventFilter(event_type=event_type, severity=severity, node_id=node_id)
    svc = engine.event_service
    items = await svc.list_page(ctx.account_id, filters, page=page, per_page=per_page)
    total = await svc.count(ctx.account_id, filters)
    return EventListResponse(
        items=[EventResponse.model_validate(e) for e in items],
        page=page,
        per_page=per_page,
        total=total,
    )


@router.get("/stats")
async def event_stats(
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> SeverityStatsResponse:
    stats = await engine.event_service.severity_stats(ctx.account_id)
    info, warning, error = stats.get("Info", 0), stats.get("Warning", 0), stats.get("Error", 0)
    return SeverityStatsResponse(
        info=info, warning=warning, error=error, total=info + warning + error
    )


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    ctx: Annotated[CallerContext, Depends(require_caller)],
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> EventDetailResponse:
    """One event with every delivery attempt made for it."""
    event = await engine.event_service.get(event_id, account_id=ctx.account_id)
    history = await engine.ledger_service.history(event.id)
    base = EventResponse.model_validate(event)
    return EventDetailResponse(
        **base.model_dump(),
        deliveries=[DeliveryAttemptResponse.model_validate(a) for a in history],
    )
