"""Failures raised by the gallery services.

The API layer turns each of these into an error envelope using the class's
``status_code`` and ``error_code``.
"""
from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code or self.status_code
        self.error_code = error_code or self.error_code
        self.detail = detail or {}


class ValidationError(ServiceError):
    """Upload body, identity header or id list is unusable."""


class PayloadTooLargeError(ValidationError):
    status_code = 413


class AuthenticationError(ServiceError):
    """No caller identity was forwarded."""

    status_code = 401
    error_code = "unauthorized"


class NotFoundError(ServiceError):
    """The image is unknown or belongs to another user."""

    status_code = 404
    error_code = "not_found"


__all__ = [
    "AuthenticationError",
    "NotFoundError",
    "PayloadTooLargeError",
    "ServiceError",
    "ValidationError",
]
