"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- FailureKind: Taxonomy of expected failures and their HTTP mapping
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Failure Kinds:
    UNAUTHENTICATED  No verified identity (401)
    NOT_FOUND        Missing, hidden, or otherwise invisible resource (404)
    FORBIDDEN        Legitimate member attempting a disallowed action (403)
    VALIDATION       Caller-correctable input problem (400)
    UPSTREAM         Storage or transfer failure, retryable (502)

Usage:
    from core.services import BaseService, FailureKind, ServiceResult

    class ConversationService(BaseService):
        @classmethod
        def rename(cls, user, conversation_id, name) -> ServiceResult[Conversation]:
            if not name.strip():
                return ServiceResult.failure(
                    "Group name is required",
                    error_code="NAME_REQUIRED",
                )
            with cls.atomic():
                ...
            cls.get_logger().info(f"User {user.id} renamed {conversation_id}")
            return ServiceResult.success(conversation)

    # In view
    result = ConversationService.rename(request.user, pk, name)
    if not result:
        return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


class FailureKind(str, Enum):
    """Category of an expected failure. Determines the HTTP status."""

    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    UPSTREAM = "upstream"


FAILURE_HTTP_STATUS: dict[FailureKind, int] = {
    FailureKind.UNAUTHENTICATED: 401,
    FailureKind.NOT_FOUND: 404,
    FailureKind.FORBIDDEN: 403,
    FailureKind.VALIDATION: 400,
    FailureKind.UPSTREAM: 502,
}


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule
    violations, visibility denials).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        kind: Failure category (see FailureKind)

    Usage:
        # Success case
        return ServiceResult.success(message)

        # Hidden from the caller
        return ServiceResult.not_found("Conversation not found")

        # Role too low
        return ServiceResult.failure(
            "Only the owner can change roles",
            error_code="OWNER_REQUIRED",
            kind=FailureKind.FORBIDDEN,
        )
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    kind: FailureKind | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        kind: FailureKind = FailureKind.VALIDATION,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            kind: Failure category, defaults to VALIDATION

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            kind=kind,
        )

    @classmethod
    def not_found(cls, error: str = "Not found", error_code: str = "NOT_FOUND") -> ServiceResult[T]:
        """
        Create a NOT_FOUND failure.

        Used for every visibility denial so that a hidden or blocked
        resource is indistinguishable from a missing one.
        """
        return cls.failure(error, error_code=error_code, kind=FailureKind.NOT_FOUND)

    @classmethod
    def forbidden(cls, error: str, error_code: str = "FORBIDDEN") -> ServiceResult[T]:
        """Create a FORBIDDEN failure."""
        return cls.failure(error, error_code=error_code, kind=FailureKind.FORBIDDEN)

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        error_code: str | None = None,
        kind: FailureKind = FailureKind.UPSTREAM,
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Args:
            exc: The caught exception
            error_code: Optional error code (defaults to the exception's own
                error_code, then its class name)
            kind: Failure category, defaults to UPSTREAM

        Returns:
            ServiceResult with error details from exception
        """
        return cls(
            success=False,
            error=getattr(exc, "message", None) or str(exc),
            error_code=error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper(),
            kind=kind,
        )

    @property
    def http_status(self) -> int:
        """HTTP status code for this result."""
        if self.success:
            return 200
        return FAILURE_HTTP_STATUS[self.kind or FailureKind.VALIDATION]

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = ConversationService.get_conversation(user, pk)
            serialized = result.map(lambda row: ConversationRowSerializer(row).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Exception handling patterns

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        If any operation inside the block raises, all changes are
        rolled back.
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
        kind: FailureKind = FailureKind.UPSTREAM,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)
            kind: Failure category for the returned result

        Returns:
            ServiceResult with error details
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc, kind=kind)
