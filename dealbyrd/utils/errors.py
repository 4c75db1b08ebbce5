"""
Standardized error response utilities for the DealByrd API.

Error body format:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    },
    "details": {...},   # field -> message, for field validation
    "errors": [...]     # tier violations with upgradeRequired
}

Usage:
    from dealbyrd.utils.errors import error_response, ErrorCode

    return error_response("Offer not found", ErrorCode.OFFER_NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

from .exceptions import DealByrdError, FieldValidationError, TierLimitError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIER_LIMIT_EXCEEDED = "TIER_LIMIT_EXCEEDED"
    FOLDER_LOCKED = "FOLDER_LOCKED"
    SMS_QUOTA_EXCEEDED = "SMS_QUOTA_EXCEEDED"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    REINTEGRATION_REQUIRED = "REINTEGRATION_REQUIRED"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"
    OFFER_NOT_FOUND = "OFFER_NOT_FOUND"
    MERCHANT_NOT_FOUND = "MERCHANT_NOT_FOUND"
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"

    # Conflict (409)
    STATE_CONFLICT = "STATE_CONFLICT"

    # Business Logic Errors (400)
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"

    # External Service Errors (502, 503)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None,
    errors: Optional[list] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a raw code string)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Field-level messages, returned to the client
        errors: Tier violations, returned to the client

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}")
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}")

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }
    if details:
        response["details"] = details
    if errors:
        response["errors"] = errors

    return jsonify(response), status_code


def exception_response(exc: DealByrdError) -> tuple:
    """Build an error response from a DealByrdError, keeping its field-level payload."""
    return error_response(
        exc.message,
        exc.code,
        exc.status_code,
        log_error=exc.status_code >= 500,
        details=exc.details if isinstance(exc, FieldValidationError) else None,
        errors=exc.errors if isinstance(exc, TierLimitError) else None
    )


# Convenience functions for common error types
def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST, details: Optional[dict] = None) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False, details=details)


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str = "Permission denied", code: ErrorCode = ErrorCode.PERMISSION_DENIED) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def internal_error(message: str = "An unexpected error occurred") -> tuple:
    """500 Internal Server Error."""
    return error_response(message, ErrorCode.INTERNAL_ERROR, 500, log_error=True)
