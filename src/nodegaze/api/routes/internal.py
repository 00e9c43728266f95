"""Producer-facing ingestion route."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from nodegaze.api.dependencies import get_engine, require_internal
from nodegaze.api.schemas import EventCreateRequest, EventCreatedResponse
from nodegaze.engine.client import NodeGazeEngine  # noqa: TC001
from nodegaze.engine.services.event_service import NewEvent

router = APIRouter(prefix="/internal", tags=["internal"], dependencies=[Depends(require_internal)])


@router.post("/events", status_code=201)
async def ingest_event(
    body: EventCreateRequest,
    engine: Annotated[NodeGazeEngine, Depends(get_engine)],
) -> EventCreatedResponse:
    """Store an event and schedule its deliveries.

    409 when the account already used ``idempotency_key``; 400 on a
    malformed event.
    """
    event = await engine.event_service.publish(NewEvent(**body.model_dump()))
    return EventCreatedResponse(id=event.id)
