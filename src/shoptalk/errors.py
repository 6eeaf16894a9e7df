"""Error taxonomy shared by the messaging service and its clients.

Each error carries the HTTP status code the API layer answers with, so route
handlers and the client transport can translate in both directions.
"""

from __future__ import annotations


class MessagingError(RuntimeError):
    """Base exception for messaging failures."""

    status_code = 500

    def __init__(self, message: str = "Messaging operation failed") -> None:
        self.message = message
        super().__init__(message)


class ValidationError(MessagingError):
    """Rejected input (empty or oversized text, malformed ids).

    Raised before any write; safe to resubmit after fixing the input.
    """

    status_code = 400


class UnauthorizedError(MessagingError):
    """Missing or invalid bearer credential. Re-authenticate before retrying."""

    status_code = 401


class ForbiddenError(MessagingError):
    """Caller is not allowed to act on the resource. Never retried."""

    status_code = 403


class NotFoundError(MessagingError):
    """Referenced user or conversation does not exist."""

    status_code = 404


class TransientError(MessagingError):
    """Storage or network unavailable. Safe to resubmit explicitly."""

    status_code = 503


STATUS_TO_ERROR: dict[int, type[MessagingError]] = {
    400: ValidationError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    422: ValidationError,
    503: TransientError,
}


def error_for_status(status_code: int, message: str) -> MessagingError:
    """Build the error matching an HTTP status returned by the API."""
    if status_code >= 500:
        return TransientError(message)
    error_cls = STATUS_TO_ERROR.get(status_code, MessagingError)
    return error_cls(message)
