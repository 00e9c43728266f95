"""GazeError — base exception class for all NodeGaze errors."""

from __future__ import annotations


class GazeError(Exception):
    """Base error for all NodeGaze operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "nodegaze-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ValidationError(GazeError):
    """Malformed input, rejected synchronously and never retried."""

    def __init__(self, message: str, *, code: str = "validation-error") -> None:
        super().__init__(message, status_code=400, code=code)


class DuplicateError(GazeError):
    """An idempotency key was already used."""

    def __init__(self, message: str, *, code: str = "duplicate") -> None:
        super().__init__(message, status_code=409, code=code)


class NotFoundError(GazeError):
    """Unknown identifier."""

    def __init__(self, entity: str, identifier: str) -> None:
        super().__init__(
            f"{entity} not found: {identifier}",
            status_code=404,
            code=f"{entity.lower()}-not-found",
        )
        self.entity = entity
        self.identifier = identifier
