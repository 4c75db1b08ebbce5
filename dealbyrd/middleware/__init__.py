"""
Middleware package for DealByrd.
"""
from .auth import require_merchant_auth, get_merchant_id_from_request
