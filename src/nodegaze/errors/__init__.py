"""Error taxonomy for the event propagation core."""

from nodegaze.errors.delivery_errors import (
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from nodegaze.errors.gaze_errors import DuplicateError, GazeError, NotFoundError, ValidationError

__all__ = [
    "DeliveryError",
    "DuplicateError",
    "GazeError",
    "NotFoundError",
    "PermanentDeliveryError",
    "TransientDeliveryError",
    "ValidationError",
]
