"""CORS middleware configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

from nodegaze.api.middleware.auth import HEADER_ACCOUNT_ID, HEADER_USER_ID

if TYPE_CHECKING:
    from fastapi import FastAPI

_IDENTITY_HEADERS = [HEADER_ACCOUNT_ID, HEADER_USER_ID]


def setup_cors(app: FastAPI) -> None:
    """Add CORS middleware allowing all origins plus the identity headers."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", *_IDENTITY_HEADERS],
    )
