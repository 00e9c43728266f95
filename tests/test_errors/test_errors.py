"""Tests for error classes and pre-defined error instances."""

from __future__ import annotations

import pytest

from nodegaze.errors import definitions as defs
from nodegaze.errors import (
    DeliveryError,
    DuplicateError,
    GazeError,
    NotFoundError,
    PermanentDeliveryError,
    TransientDeliveryError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# GazeError base class
# ---------------------------------------------------------------------------


class TestGazeError:
    def test_default_attributes(self) -> None:
        err = GazeError("something broke")
        assert str(err) == "something broke"
        assert err.message == "something broke"
        assert err.status_code == 500
        assert err.code == "nodegaze-error"

    def test_custom_attributes(self) -> None:
        err = GazeError("bad request", status_code=400, code="bad-req")
        assert err.status_code == 400
        assert err.code == "bad-req"


class TestServiceErrors:
    def test_validation_error(self) -> None:
        err = ValidationError("title is required")
        assert isinstance(err, GazeError)
        assert err.status_code == 400
        assert err.code == "validation-error"
        assert ValidationError("bad url", code="invalid-url").code == "invalid-url"

    def test_duplicate_error(self) -> None:
        err = DuplicateError("key used")
        assert err.status_code == 409
        assert err.code == "duplicate"

    def test_not_found_error(self) -> None:
        err = NotFoundError("Notification", "n-1")
        assert err.status_code == 404
        assert err.code == "notification-not-found"
        assert err.message == "Notification not found: n-1"
        assert err.identifier == "n-1"


# ---------------------------------------------------------------------------
# Delivery errors
# ---------------------------------------------------------------------------


class TestDeliveryErrors:
    def test_transient(self) -> None:
        err = TransientDeliveryError("HTTP 503", http_status=503)
        assert isinstance(err, DeliveryError)
        assert err.retryable
        assert err.http_status == 503
        assert err.code == "delivery-transient"
        assert err.status_code == 502

    def test_permanent(self) -> None:
        err = PermanentDeliveryError("HTTP 404", http_status=404)
        assert not err.retryable
        assert err.code == "delivery-permanent"

    def test_network_error_has_no_status(self) -> None:
        assert TransientDeliveryError("connection refused").http_status is None


# ---------------------------------------------------------------------------
# Pre-defined error instances (definitions.py)
# ---------------------------------------------------------------------------


class TestDefinitions:
    """Verify all pre-defined error singletons have expected attributes."""

    @pytest.mark.parametrize(
        ("error_name", "status", "code"),
        [
            ("ErrUnauthorized", 401, "unauthorized"),
            ("ErrInvalidInternalToken", 403, "invalid-internal-token"),
            ("ErrDeliveryDisabled", 503, "delivery-disabled"),
            ("ErrEngineNotReady", 503, "engine-not-ready"),
        ],
    )
    def test_predefined_error(self, error_name: str, status: int, code: str) -> None:
        err = getattr(defs, error_name)
        assert isinstance(err, GazeError)
        assert err.status_code == status
        assert err.code == code
        assert err.message
