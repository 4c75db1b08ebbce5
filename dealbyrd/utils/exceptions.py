"""
Custom exceptions for DealByrd business logic.

Services raise these; blueprints and the app-level error handler turn them
into the standardized JSON error body (see errors.py). Each carries the HTTP
status it maps to.
"""
from typing import Dict, List, Optional


class DealByrdError(Exception):
    """Base exception for all DealByrd business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "DEALBYRD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(DealByrdError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class OfferNotFoundError(NotFoundError):
    def __init__(self, identifier=None):
        super().__init__("Offer", identifier)


class MerchantNotFoundError(NotFoundError):
    def __init__(self, identifier=None):
        super().__init__("Merchant", identifier)


class FolderNotFoundError(NotFoundError):
    def __init__(self, identifier=None):
        super().__init__("Campaign folder", identifier)


class ValidationError(DealByrdError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class FieldValidationError(DealByrdError):
    """One or more fields failed validation; `details` maps field -> message."""

    def __init__(self, details: Dict[str, str], message: str = "Validation failed"):
        self.details = details
        super().__init__(message, "VALIDATION_ERROR")


class TierLimitError(DealByrdError):
    """
    Offer requests features or volume beyond the merchant's tier.

    `errors` is the full list of violations, each
    {'field', 'message', 'upgradeRequired'}.
    """

    status_code = 403

    def __init__(self, errors: List[dict], message: str = "Tier limit exceeded"):
        self.errors = errors
        super().__init__(message, "TIER_LIMIT_EXCEEDED")


class InsufficientBalanceError(DealByrdError):
    """A ledger does not hold enough for the requested transfer."""

    def __init__(self, ledger: str, current, required, message: Optional[str] = None):
        self.ledger = ledger
        self.current = current
        self.required = required
        if message is None:
            message = f"Insufficient {ledger}. Current: {current}, Required: {required}"
        super().__init__(message, "INSUFFICIENT_BALANCE")


class OfferStateError(DealByrdError):
    """Offer is in a state that forbids the requested change."""

    status_code = 409

    def __init__(self, message: str, code: str = "STATE_CONFLICT"):
        super().__init__(message, code)


class ReintegrationRequiredError(OfferStateError):
    status_code = 400

    def __init__(self, message: str = "Cannot activate offer that needs reintegration"):
        super().__init__(message, "REINTEGRATION_REQUIRED")


class LockedFolderError(OfferStateError):
    status_code = 403

    def __init__(self, message: str = "Cannot modify offers in a locked campaign folder"):
        super().__init__(message, "FOLDER_LOCKED")


class SmsQuotaError(DealByrdError):
    """Merchant's tier does not allow sending the requested texts."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, "SMS_QUOTA_EXCEEDED")


class ConfigurationError(DealByrdError):
    """A required provider (Twilio, SendGrid) is not configured."""

    status_code = 503

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
