"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/api/notification")
    async def list_notifications(
        ctx: Annotated[CallerContext, Depends(require_caller)],
        engine: Annotated[NodeGazeEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from nodegaze.api.middleware.auth import (
    HEADER_ACCOUNT_ID,
    HEADER_INTERNAL_TOKEN,
    HEADER_USER_ID,
    CallerContext,
    authenticate_request,
    check_internal_token,
)
from nodegaze.engine.client import NodeGazeEngine  # noqa: TC001
from nodegaze.errors.definitions import ErrEngineNotReady

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def get_engine(request: Request) -> NodeGazeEngine:
    """Retrieve the engine from ``app.state``.

    Raises:
        GazeError: 503 if the engine is not initialized yet.
    """
    engine: NodeGazeEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ErrEngineNotReady
    return engine


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


def require_caller(
    x_account_id: Annotated[str, Header(alias=HEADER_ACCOUNT_ID)] = "",
    x_user_id: Annotated[str, Header(alias=HEADER_USER_ID)] = "",
) -> CallerContext:
    """Dependency that requires the proxy identity headers."""
    return authenticate_request(account_header=x_account_id, user_header=x_user_id)


def require_internal(
    request: Request,
    x_internal_token: Annotated[str, Header(alias=HEADER_INTERNAL_TOKEN)] = "",
) -> None:
    """Dependency guarding producer-facing ``/internal`` routes."""
    check_internal_token(request.app.state.config.internal_token, x_internal_token)
