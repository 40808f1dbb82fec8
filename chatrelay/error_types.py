"""
Centralized error types and constants for the chat relay.

Standardized error types, WebSocket close codes and reasons, and response
builders shared by the HTTP and WebSocket layers.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error types for consistent categorization."""

    # Authentication and Authorization
    AUTHENTICATION_FAILED = "authentication_failed"
    AUTHENTICATION_REQUIRED = "authentication_required"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"

    # Validation Errors
    VALIDATION_ERROR = "validation_error"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_FORMAT = "invalid_format"

    # Resource Errors
    RESOURCE_ALREADY_EXISTS = "resource_already_exists"

    # Storage
    DATABASE_ERROR = "database_error"

    # Configuration and System
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class CloseCode:
    """WebSocket close codes (RFC 6455) used by the relay."""

    NORMAL = 1000
    GOING_AWAY = 1001
    POLICY_VIOLATION = 1008
    INTERNAL_ERROR = 1011


class CloseReason:
    """Close reasons sent to clients; distinct per failure so clients can tell them apart."""

    AUTHENTICATION_REQUIRED = "Authentication required"
    INVALID_TOKEN = "Invalid token"
    SERVER_SHUTDOWN = "Server shutting down"
    DELIVERY_FAILED = "Delivery failed"


class ErrorMessages:
    """Common error messages for consistent user experience."""

    CREDENTIALS_REQUIRED = "Username and password required"
    INVALID_CREDENTIALS = "Invalid credentials"
    ACCESS_TOKEN_REQUIRED = "Access token required"
    INVALID_OR_EXPIRED_TOKEN = "Invalid or expired token"
    USERNAME_EXISTS = "Username already exists"
    INVALID_FORMAT = "Invalid message format"
    INVALID_REQUEST = "Invalid request body"
    INTERNAL_ERROR = "An internal error occurred"


def create_standard_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized HTTP error response body.

    The top-level "error" key holds the user-facing message so simple
    clients can display it directly.
    """
    return {
        "error": user_friendly or message,
        "error_type": error_type.value,
        "message": message,
        "details": details or {},
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_websocket_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create a standardized WebSocket error frame.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)

    Returns:
        WebSocket error frame dictionary
    """
    return {
        "type": "error",
        "error_type": error_type.value,
        "message": message,
        "user_friendly": user_friendly or message,
        "details": details or {},
    }
