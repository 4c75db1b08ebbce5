"""
Database models for DealByrd.
Merchants, offers, campaign folders, SMS metering and notifications.
"""
from .merchant import Merchant, MembershipTier, TIER_ORDER
from .delivery_config import (
    DeliveryMethod,
    CouponCodesConfig,
    TextAlertsConfig,
    MobileAppConfig,
    MmsConfig,
    MobileWalletConfig,
    parse_delivery_config,
    delivery_config_to_dict,
)
from .offer import (
    Offer,
    CampaignFolder,
    OfferStatus,
    OfferType,
    AddType,
    RedemptionType,
    FolderStatus,
)
from .notification import (
    Notification,
    NotificationPreferences,
    NotificationType,
    NotificationPriority,
)
from .sms_usage import SmsUsage
from .scheduler_state import SchedulerState
