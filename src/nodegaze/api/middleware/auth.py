"""Caller identity and internal-token checks.

NodeGaze sits behind the dashboard proxy, which authenticates users and
forwards the resolved identity as trusted headers:

- ``x-account-id`` — tenant account the request acts for
- ``x-user-id`` — user performing the request

Producers calling ``/internal/*`` present ``x-internal-token`` when an
internal token is configured.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass

from nodegaze.errors.definitions import ErrInvalidInternalToken, ErrUnauthorized

HEADER_ACCOUNT_ID = "x-account-id"
HEADER_USER_ID = "x-user-id"
HEADER_INTERNAL_TOKEN = "x-internal-token"  # noqa: S105


@dataclass(frozen=True)
class CallerContext:
    """Identity of the dashboard caller attached to the request."""

    account_id: str
    user_id: str


def authenticate_request(*, account_header: str = "", user_header: str = "") -> CallerContext:
    """Build the caller context from the proxy headers.

    Raises:
        GazeError: 401 if either header is missing or blank.
    """
    account_id = account_header.strip()
    user_id = user_header.strip()
    if not account_id or not user_id:
        raise ErrUnauthorized
    return CallerContext(account_id=account_id, user_id=user_id)


def check_internal_token(expected: str, presented: str) -> None:
    """Compare the presented internal token in constant time.

    An empty *expected* token disables the check.

    Raises:
        GazeError: 403 if the token does not match.
    """
    if not expected:
        return
    if not hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8")):
        raise ErrInvalidInternalToken
