"""
Shared error types for core services.

Every service error carries an ``error_kind`` that the service boundary
turns into a tagged error payload.
"""

from __future__ import annotations


class ServiceError(Exception):
    error_kind = "internal_error"
    retryable = False

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class ValidationIssue(ServiceError, ValueError):
    error_kind = "validation_error"

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message, field=field)
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class AuthError(ServiceError):
    """Missing or invalid session token, or wrong credentials."""

    error_kind = "auth_error"

    def __init__(self, message: str = "Unauthorized", *, field: str | None = None):
        super().__init__(message, field=field)


class Forbidden(ServiceError):
    error_kind = "forbidden"

    def __init__(self, message: str = "Forbidden", *, field: str | None = None):
        super().__init__(message, field=field)


class NotFound(ServiceError):
    error_kind = "not_found"


class Conflict(ServiceError):
    error_kind = "conflict"


class StorageFailure(ServiceError):
    """Raised when the store rejects a transaction for an unexpected reason."""

    error_kind = "storage_failure"
    retryable = True

    def __init__(self, message: str = "Storage operation failed", *, field: str | None = None):
        super().__init__(message, field=field)
