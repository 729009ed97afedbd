"""Tagged API errors and their transport status codes.

Handlers raise one of these close to the failing check. The app factory
registers a single exception handler that renders every ``ApiError`` as
``{"success": false, "message": ...}`` with the status from
``status_for``.

Kinds
-----
ValidationError   client input malformed                    400
Unauthenticated   missing, invalid or expired bearer token  401
Forbidden         authenticated but not the resource owner  403
NotFound          resource absent                           404
Internal          unexpected failure                        500
"""
from __future__ import annotations


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    """Raised when inbound data violates one or more validation rules."""

    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Access token required"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Internal(ApiError):
    status_code = 500


def status_for(exc: BaseException) -> int:
    """Return the HTTP status for an exception; anything untagged is a 500."""
    if isinstance(exc, ApiError):
        return exc.status_code
    return Internal.status_code


def message_for(exc: BaseException) -> str:
    """Client-facing message. Server-side failures never leak their text."""
    if isinstance(exc, ApiError) and exc.status_code < 500:
        return exc.message
    return Internal.default_message
