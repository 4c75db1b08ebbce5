"""
Merchant Authentication Middleware.

Resolves the calling merchant from the Flask session. In dev mode (and in
tests) the X-Merchant-ID header is accepted as well.
"""
from functools import wraps
from flask import request, session, g, current_app

from ..extensions import db
from ..models import Merchant
from ..utils.errors import unauthorized, not_found, ErrorCode


def get_merchant_id_from_request():
    """
    Get the merchant ID for this request.

    Priority:
    1. merchant_id stored in the session at login
    2. X-Merchant-ID header (dev mode only)

    Returns:
        Merchant ID or None
    """
    merchant_id = session.get('merchant_id')
    if merchant_id:
        return merchant_id

    if current_app.config.get('AUTH_DEV_MODE'):
        header = request.headers.get('X-Merchant-ID')
        if header:
            try:
                return int(header)
            except (ValueError, TypeError):
                return None

    return None


def require_merchant_auth(f):
    """
    Decorator to require an authenticated merchant.

    Sets g.merchant_id and g.merchant.

    Usage:
        @require_merchant_auth
        def my_endpoint():
            merchant_id = g.merchant_id
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        merchant_id = get_merchant_id_from_request()
        if not merchant_id:
            return unauthorized("Authentication required")

        merchant = db.session.get(Merchant, merchant_id)
        if not merchant:
            return not_found("Merchant not found", ErrorCode.MERCHANT_NOT_FOUND)

        g.merchant_id = merchant.id
        g.merchant = merchant

        return f(*args, **kwargs)

    return decorated_function
