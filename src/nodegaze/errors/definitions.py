"""Pre-defined error instances shared by the API layer."""

from __future__ import annotations

from nodegaze.errors.gaze_errors import GazeError

# -- Authentication --------------------------------------------------------

ErrUnauthorized = GazeError("unauthorized", status_code=401, code="unauthorized")
ErrInvalidInternalToken = GazeError(
    "invalid internal token", status_code=403, code="invalid-internal-token"
)

# -- Availability ----------------------------------------------------------

ErrDeliveryDisabled = GazeError(
    "notification delivery is not enabled", status_code=503, code="delivery-disabled"
)
ErrEngineNotReady = GazeError("engine not initialized", status_code=503, code="engine-not-ready")
