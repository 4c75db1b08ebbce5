"""
Business logic services for DealByrd.
"""
from .bank_service import BankService
from .folder_service import FolderService
from .lifecycle_service import LifecycleService
from .notification_service import NotificationService
from .offer_service import OfferService

__all__ = [
    'BankService',
    'FolderService',
    'LifecycleService',
    'NotificationService',
    'OfferService'
]
