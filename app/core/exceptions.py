"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- One HTTP status per failure category

Exception Hierarchy:
    BaseApplicationError (base)
    └── ExternalServiceError - Storage/transfer failures (502)

Services return ServiceResult for expected failures; these exceptions are
raised by lower layers (storage helpers) and either converted with
BaseService.handle_exception or rendered by api_exception_handler when
they escape to a view.

Usage:
    from core.exceptions import ExternalServiceError

    raise ExternalServiceError(
        "Could not presign upload URL",
        error_code="STORAGE_UNAVAILABLE",
        details={"backend": "s3"},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.constants import SIGN_IN_REQUIRED

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)
        status_code: HTTP status used when rendered by the API
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Upload target not found",
                "error_code": "UPLOAD_TARGET_NOT_FOUND",
                "details": {"reference": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a storage or transfer collaborator fails.

    These failures are retryable. Log the original error for debugging but
    don't expose internal details to clients.
    """

    default_error_code: str = "UPSTREAM_ERROR"
    status_code: int = 502


def api_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler.

    Renders application errors with their status code and replaces DRF's
    authentication failures with a uniform "sign in required" payload.
    Everything else falls through to DRF's default handler.
    """
    if isinstance(exc, BaseApplicationError):
        if exc.status_code >= 500:
            logger.error(f"Upstream failure in {context.get('view')}: {exc!r}")
        return Response(exc.to_dict(), status=exc.status_code)

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return Response(
            {"error": SIGN_IN_REQUIRED, "error_code": "UNAUTHENTICATED"},
            status=401,
            headers={"WWW-Authenticate": 'Bearer realm="api"'},
        )

    return exception_handler(exc, context)
