"""
Application error kinds.

Services raise these; the HTTP layer maps them to responses by ``kind``.
Delivery errors describe a single endpoint's outcome and stay inside the
dispatch engine.
"""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(AppError):
    kind = ErrorKind.FORBIDDEN


class InternalError(AppError):
    kind = ErrorKind.INTERNAL


class ProviderUnavailable(Exception):
    """The delivery backend is not configured or failed to initialize."""


class DeliveryError(Exception):
    """A single delivery attempt failed."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class TransientDeliveryFailure(DeliveryError):
    """Quota, network or provider fault; the endpoint stays registered."""


class PermanentInvalidEndpoint(DeliveryError):
    """The endpoint is malformed or no longer registered and should be pruned."""
