"""Application-level exception types.

Convention:
- ``ApiError`` subclasses: client-facing failures. The global handler in
  ``backend/main.py`` renders them as the error envelope
  ``{"success": false, "error": {"message", "code", "statusCode"}}`` using the
  class's ``status_code`` and ``code``. The message is forwarded verbatim, so it
  must be safe to show to clients.
- ``InternalServerError``: for errors whose details must never reach clients
  (storage failures, config problems, etc.). The global handler logs the full
  message at ERROR and returns a generic 500 ``SERVER_ERROR`` envelope.
"""

from __future__ import annotations


class ApiError(Exception):
    """Base class for errors rendered into the client error envelope."""

    status_code: int = 400
    code: str = "INVALID_DATA"
    default_message: str = "Invalid request"

    def __init__(self, message: str | None = None, *, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class UnauthorizedError(ApiError):
    """Missing, invalid or expired credential."""

    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized - invalid or expired token"


class InvalidFileTypeError(ApiError):
    """Unknown or missing sync file type."""

    code = "INVALID_FILE_TYPE"
    default_message = "Invalid file type"


class MissingFieldError(ApiError):
    """A required request field is absent or empty."""

    default_message = "Missing required fields"


class InvalidDataShapeError(ApiError):
    """Payload does not have the shape the file type expects."""

    default_message = "Invalid data"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class PayloadTooLargeError(ApiError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"
    default_message = "Payload too large"


class RateLimitedError(ApiError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests"


class ServerError(ApiError):
    """Failure reported to the client with a fixed, detail-free message."""

    status_code = 500
    code = "SERVER_ERROR"
    default_message = "Internal server error"


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global exception handler in ``backend/main.py`` catches this, logs
    the full message server-side, and returns HTTP 500 with a generic
    ``SERVER_ERROR`` envelope.
    """
