"""
Exception hierarchy for the chat relay server.

Every error raised by the relay derives from ChatRelayError, which carries an
ErrorContext plus structured details and logs itself when constructed.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException

from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """
    Contextual information for error handling.

    Provides structured context for error reporting and debugging.
    """

    user_id: str | None = None
    connection_id: str | None = None
    request_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "user_id": self.user_id,
            "connection_id": self.connection_id,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class ChatRelayError(Exception):
    """
    Base exception for all chat relay errors.

    Provides structured error handling with context and metadata
    for proper error categorization and debugging.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        """
        Initialize a chat relay error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: User-friendly error message
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with structured context."""
        logger.warning(
            "Chat relay error occurred",
            error_type=self.__class__.__name__,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class AuthenticationError(ChatRelayError):
    """Authentication and authorization errors."""

    def __init__(self, message: str, context: ErrorContext | None = None, auth_type: str = "unknown", **kwargs):
        super().__init__(message, context, **kwargs)
        self.auth_type = auth_type
        self.details["auth_type"] = auth_type


class TokenInvalidError(AuthenticationError):
    """Token failed signature, format, or claim validation."""

    def __init__(self, message: str = "Invalid token", context: ErrorContext | None = None, **kwargs):
        super().__init__(message, context, auth_type="token", **kwargs)


class TokenExpiredError(TokenInvalidError):
    """Token was well-formed and signed but its validity window has passed."""

    def __init__(self, message: str = "Token expired", context: ErrorContext | None = None, **kwargs):
        super().__init__(message, context, **kwargs)


class UserAlreadyExistsError(ChatRelayError):
    """Registration attempted for a username that is already taken."""

    def __init__(self, username: str, context: ErrorContext | None = None, **kwargs):
        super().__init__(
            f"Username already exists: {username}",
            context,
            user_friendly="Username already exists",
            **kwargs,
        )
        self.username = username
        self.details["username"] = username


class DatabaseError(ChatRelayError):
    """Database operation errors."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        operation: str = "unknown",
        table: str | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.operation = operation
        self.table = table
        self.details["operation"] = operation
        if table:
            self.details["table"] = table


class StorageError(DatabaseError):
    """Message store I/O failure (append, trim, or read)."""


class ValidationError(ChatRelayError):
    """Data validation errors."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,
        value: Any | None = None,
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        self.value = value
        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = str(value)


class MessageValidationError(ValidationError):
    """Inbound chat frame could not be parsed or failed schema validation."""

    def __init__(self, message: str, error_type: str = "invalid_format", **kwargs):
        super().__init__(message, **kwargs)
        self.error_type = error_type
        self.details["error_type"] = error_type


class LoggedHTTPException(HTTPException):
    """
    HTTPException that logs itself when raised.

    Used at the HTTP edge so every 4xx/5xx carries a structured log entry.
    """

    def __init__(self, status_code: int, detail: str, context: ErrorContext | None = None, **kwargs):
        super().__init__(status_code=status_code, detail=detail, **kwargs)
        self.context = context or ErrorContext()
        log = logger.warning if status_code < 500 else logger.error
        log(
            "HTTP error raised",
            status_code=status_code,
            detail=detail,
            context=self.context.to_dict(),
        )


def create_error_context(**kwargs) -> ErrorContext:
    """
    Create an error context with the given parameters.

    Args:
        **kwargs: Context parameters

    Returns:
        ErrorContext object
    """
    return ErrorContext(**kwargs)
