"""
Utility modules for DealByrd.
"""
from .logging_config import setup_logging
from .errors import (
    ErrorCode,
    error_response,
    exception_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    internal_error
)
from .exceptions import (
    DealByrdError,
    NotFoundError,
    OfferNotFoundError,
    MerchantNotFoundError,
    FolderNotFoundError,
    ValidationError,
    FieldValidationError,
    TierLimitError,
    InsufficientBalanceError,
    OfferStateError,
    ReintegrationRequiredError,
    LockedFolderError,
    SmsQuotaError,
    ConfigurationError
)
