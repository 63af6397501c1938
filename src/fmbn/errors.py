"""Typed service errors.

Raised by the storage layer, business services and integrations. The
error handler middleware turns them into JSON responses with a
``message`` field and the error's status code.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


class ValidationError(ServiceError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Invalid request data"


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class ConflictError(ServiceError):
    """A uniqueness constraint would be violated."""

    status_code = 409
    default_message = "Already exists"


class EntitlementError(ServiceError):
    """The caller's plan or usage quota does not allow the operation."""

    status_code = 403
    default_message = "Upgrade required"


class InsufficientFundsError(ServiceError):
    """A debit exceeds the wallet balance."""

    status_code = 400
    default_message = "Insufficient balance"


class UpstreamError(ServiceError):
    """An external collaborator failed. The client only sees a generic message."""

    status_code = 500
    default_message = "Upstream service unavailable"
