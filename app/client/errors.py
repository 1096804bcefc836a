"""
Client-side exceptions.

Every non-2xx response becomes a ChatApiError carrying the server's
error envelope. Transport failures (connection refused, timeouts) become
ChatApiError with kind "upstream" so callers can treat them as retryable.

Kinds mirror the server's failure taxonomy:
    unauthenticated (401), not_found (404), forbidden (403),
    validation (400), upstream (5xx and transport errors)
"""

from __future__ import annotations

UNAUTHENTICATED = "unauthenticated"
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
VALIDATION = "validation"
UPSTREAM = "upstream"

KIND_BY_STATUS: dict[int, str] = {
    400: VALIDATION,
    401: UNAUTHENTICATED,
    403: FORBIDDEN,
    404: NOT_FOUND,
}


def kind_for_status(status_code: int | None) -> str:
    if status_code is None or status_code >= 500:
        return UPSTREAM
    return KIND_BY_STATUS.get(status_code, VALIDATION)


class ChatApiError(Exception):
    """
    A failed API call.

    Attributes:
        message: Human-readable reason from the server (or the transport)
        status_code: HTTP status, None when no response was received
        error_code: Machine-readable code such as "EMPTY_MESSAGE"
        errors: Field errors, if the server sent any
        kind: One of the failure kinds above
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        errors: dict | None = None,
        kind: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.errors = errors or {}
        self.kind = kind or kind_for_status(status_code)
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.kind == UPSTREAM

    def __repr__(self) -> str:
        return f"ChatApiError({self.status_code}, {self.error_code!r}, {self.message!r})"


class UploadRejected(ChatApiError):
    """A file failed the client-side type or size check; nothing was sent."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message, error_code=error_code, kind=VALIDATION)
