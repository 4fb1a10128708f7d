"""
Domain exceptions raised by the repository and service layers.

Routes translate these into HTTP responses (see api/routes/__init__.py).
"""

from typing import Optional


class ServiceError(ValueError):
    """Base class for expected, reportable service failures."""


class ValidationFailedError(ServiceError):
    """Raised when input is malformed, missing, or out of range."""


class ConflictError(ServiceError):
    """Raised when a write collides with existing state (duplicate email, full match, ...)."""


class NotFoundError(ServiceError):
    """Raised when a referenced entity does not exist."""


class InvalidCodeError(NotFoundError):
    """Raised when an invite code does not match any match."""


class ForbiddenError(ServiceError):
    """Raised when the caller's role or ownership does not permit the operation."""


class QuotaExceededError(ForbiddenError):
    """Raised when the caller's plan does not allow another created/joined match."""

    def __init__(self, message: str, limits: Optional[dict] = None):
        super().__init__(message)
        self.limits = limits or {}
