"""
Custom exception classes for API Workbench.

Every error the application reports to the user derives from AppError so the
controller can present them consistently.
"""

from typing import Any


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, detail: str, error_code: str = "APP_ERROR", cause: Exception | None = None):
        self.detail = detail
        self.error_code = error_code
        self.cause = cause
        super().__init__(detail)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.detail} (caused by: {self.cause})"
        return self.detail


class ConfigError(AppError):
    """Exception raised when the configuration cannot be determined or is invalid."""

    def __init__(self, detail: str, cause: Exception | None = None):
        super().__init__(detail=detail, error_code="CONFIG_ERROR", cause=cause)


class ValidationError(AppError):
    """Exception raised when user input fails validation. Shown inline, never logged as a failure."""

    def __init__(self, detail: str, field: str | None = None):
        super().__init__(detail=detail, error_code="VALIDATION_ERROR")
        self.field = field


class HttpError(AppError):
    """
    Exception raised when an outbound HTTP request fails.

    `error_type` is one of network_error, timeout, invalid_url, too_large or
    unknown; the gateway turns it into an ExecuteErrorResponse.
    """

    def __init__(
        self,
        detail: str,
        error_type: str = "network_error",
        details: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(detail=detail, error_code="HTTP_ERROR", cause=cause)
        self.error_type = error_type
        self.details = details


class DatabaseError(AppError):
    """Exception raised when a database connection or query fails."""

    def __init__(
        self,
        detail: str = "Database error occurred",
        cause: Exception | None = None,
        connection_lost: bool = False,
    ):
        super().__init__(detail=detail, error_code="DATABASE_ERROR", cause=cause)
        self.connection_lost = connection_lost


class StorageError(AppError):
    """Exception raised when a document cannot be loaded, saved or migrated."""

    def __init__(self, detail: str, cause: Exception | None = None, kind: Any = None):
        super().__init__(detail=detail, error_code="STORAGE_ERROR", cause=cause)
        self.kind = kind

