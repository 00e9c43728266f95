"""Outbound delivery errors.

These never reach an API caller: the dispatcher catches them and turns them
into ledger rows.
"""

from __future__ import annotations

from nodegaze.errors.gaze_errors import GazeError


class DeliveryError(GazeError):
    """Base class for a failed delivery attempt."""

    retryable: bool = False

    def __init__(self, message: str, *, http_status: int | None = None, code: str) -> None:
        super().__init__(message, status_code=502, code=code)
        self.http_status = http_status


class TransientDeliveryError(DeliveryError):
    """Network error, timeout, HTTP 429 or 5xx — retried with backoff."""

    retryable = True

    def __init__(self, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message, http_status=http_status, code="delivery-transient")


class PermanentDeliveryError(DeliveryError):
    """HTTP 4xx other than 429 — the endpoint is misconfigured, no retry."""

    def __init__(self, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message, http_status=http_status, code="delivery-permanent")
