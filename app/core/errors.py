"""
Domain errors shared by services and routes.
Each error carries the HTTP status and the message that is safe to show the client;
internal detail goes to the log, never to the response.
"""
from typing import Any


class AppError(Exception):
    status_code: int = 500
    public_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        detail: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.detail = detail or {}
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Bad or missing input. User-correctable, no side effect."""

    status_code = 400
    public_message = "Invalid request."


class ConflictError(AppError):
    """An unresolved or successful purchase already exists for (user, story)."""

    status_code = 409
    public_message = "You have already initiated payment for this story."


class NotFoundError(AppError):
    status_code = 404
    public_message = "Not found."


class GatewayError(AppError):
    """Transport, HTTP or signature failure talking to the payment gateway or the catalog."""

    status_code = 502
    public_message = "Upstream service unavailable."


class StorageError(AppError):
    """Unexpected constraint violation or lost database connectivity."""

    status_code = 500
    public_message = "Internal Server Error"


class RateLimitError(AppError):
    status_code = 429
    public_message = "Too many purchase attempts. Try again later."
