# app/core/errors.py
"""
Application error taxonomy.
Services raise these; exception handlers registered in app.main turn them
into the {"error": "<message>"} JSON envelope with the matching status code.
"""
from fastapi import status


class AppError(Exception):
    """Base class for every error surfaced to the HTTP boundary."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input (user-correctable)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid request"


class UnauthorizedError(AppError):
    """Missing, invalid or expired credential."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "unauthorized"


class NotFoundError(AppError):
    """Resource absent or not owned by the caller."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "not found"


class ConflictError(AppError):
    """Duplicate unique field."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "conflict"


class UpstreamError(AppError):
    """AI provider failure or empty completion."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "AI provider error"


class InternalError(AppError):
    """Persistence failure."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal error"
