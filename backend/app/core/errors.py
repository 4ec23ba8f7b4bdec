from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base class for failures that map onto an HTTP status and a client-safe message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "conflict"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthorized"


class StorageUnavailable(AppError):
    default_code = "storage_unavailable"


class NotificationFailure(AppError):
    default_code = "notification_failure"
