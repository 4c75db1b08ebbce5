"""
Tier capability gates for offers leaving draft.

Both validators return a list of violations shaped
    {'field': ..., 'message': ..., 'upgradeRequired': <tier>}
and collect every violation instead of stopping at the first one.
"""
from typing import List, Optional

from ..models import Offer, OfferStatus, OfferType, AddType, RedemptionType, DeliveryMethod
from ..models.merchant import MembershipTier
from .tier_limits import get_tier_capabilities, next_tier

UPGRADE_PITCHES = {
    'countdown': "Countdown timers create urgency and boost conversions!",
    'folders': "Campaign folders help you stay organized with multiple offers.",
    'notifications': "Get SMS alerts when your offers perform well.",
    'autoExtend': "Auto-extend keeps successful offers running automatically.",
    'media': "Product images and videos showcase your offerings better.",
    'customerAcquisition': "Pay-per-click customer acquisition brings new customers to your business.",
    'walletPasses': "Mobile wallet passes make redemption seamless for customers.",
}


def upgrade_message(required_tier: MembershipTier, feature: str) -> str:
    pitch = UPGRADE_PITCHES.get(feature, "Unlock this premium feature")
    return f"{pitch} Upgrade to {MembershipTier(required_tier).value} to use this feature."


def required_tier_for_offer_type(offer_type: str) -> MembershipTier:
    if offer_type in (OfferType.PERCENTAGE.value, OfferType.DOLLAR_AMOUNT.value):
        return MembershipTier.NEST
    return MembershipTier.FREEBYRD


def required_tier_for_delivery_method(method: str) -> MembershipTier:
    if method == DeliveryMethod.COUPON_CODES.value:
        return MembershipTier.NEST
    if method == DeliveryMethod.TEXT_MESSAGE_ALERTS.value:
        return MembershipTier.FREEBYRD
    if method in (DeliveryMethod.MMS_BASED_COUPONS.value, DeliveryMethod.MOBILE_APP_BASED_COUPONS.value):
        return MembershipTier.ASCEND
    return MembershipTier.SOAR


def _violation(field: str, message: str, tier: MembershipTier) -> dict:
    return {'field': field, 'message': message, 'upgradeRequired': tier.value}


def validate_offer_against_tier(offer_data: dict, tier, status: str) -> List[dict]:
    """
    Check requested offer features against the merchant's tier.

    Drafts are never restricted. Returns every violation found.
    """
    if status == OfferStatus.DRAFT.value:
        return []

    tier = MembershipTier(tier)
    limits = get_tier_capabilities(tier)
    errors = []

    offer_type = offer_data.get('offer_type')
    if offer_type and offer_type not in limits.allowed_offer_types:
        required = required_tier_for_offer_type(offer_type)
        errors.append(_violation(
            'offer_type',
            f"{tier.value} tier only supports {', '.join(limits.allowed_offer_types)} offers. "
            f"{upgrade_message(required, 'offerType')}",
            required
        ))

    add_type = offer_data.get('add_type')
    if add_type and add_type != AddType.REGULAR.value and not limits.allow_countdown:
        errors.append(_violation('add_type', upgrade_message(MembershipTier.ASCEND, 'countdown'),
                                 MembershipTier.ASCEND))

    if offer_data.get('campaign_folder_id') and not limits.allow_folders:
        errors.append(_violation('campaign_folder_id', upgrade_message(MembershipTier.ASCEND, 'folders'),
                                 MembershipTier.ASCEND))

    if ((offer_data.get('notify_on_target_met') or offer_data.get('notify_on_poor_performance'))
            and not limits.allow_notifications):
        errors.append(_violation('notifications', upgrade_message(MembershipTier.ASCEND, 'notifications'),
                                 MembershipTier.ASCEND))

    if offer_data.get('auto_extend') and not limits.allow_auto_extend:
        errors.append(_violation('auto_extend', upgrade_message(MembershipTier.ASCEND, 'autoExtend'),
                                 MembershipTier.ASCEND))

    if (offer_data.get('image_url') or offer_data.get('video_url')) and not limits.allow_media:
        errors.append(_violation('media', upgrade_message(MembershipTier.FREEBYRD, 'media'),
                                 MembershipTier.FREEBYRD))

    if offer_data.get('get_new_customers_enabled') and not limits.allow_customer_acquisition:
        errors.append(_violation('get_new_customers_enabled',
                                 upgrade_message(MembershipTier.SOAR, 'customerAcquisition'),
                                 MembershipTier.SOAR))

    method = offer_data.get('coupon_delivery_method')
    if (offer_data.get('redemption_type') == RedemptionType.COUPON.value and method
            and method not in limits.allowed_delivery_methods):
        required = required_tier_for_delivery_method(method)
        if method == DeliveryMethod.MOBILE_WALLET_PASSES.value:
            hint = upgrade_message(MembershipTier.SOAR, 'walletPasses')
        else:
            hint = f"Upgrade to {required.value}."
        errors.append(_violation(
            'coupon_delivery_method',
            f"{tier.value} tier only supports {', '.join(limits.allowed_delivery_methods)} delivery methods. {hint}",
            required
        ))

    return errors


def count_active_offers(merchant_id: int, exclude_offer_id: Optional[str] = None) -> int:
    query = Offer.query.filter(
        Offer.merchant_id == merchant_id,
        Offer.status == OfferStatus.ACTIVE.value,
        Offer.is_deleted.is_(False)
    )
    if exclude_offer_id:
        query = query.filter(Offer.id != exclude_offer_id)
    return query.count()


def validate_active_offer_count(merchant_id: int, tier, current_offer_id: Optional[str] = None) -> List[dict]:
    """Check that one more active offer fits under the tier's ceiling."""
    tier = MembershipTier(tier)
    limit = get_tier_capabilities(tier).max_active_offers
    active_count = count_active_offers(merchant_id, exclude_offer_id=current_offer_id)

    if active_count < limit:
        return []

    return [_violation(
        'activeOfferCount',
        f"{tier.value} tier allows maximum {limit} active offer{'' if limit == 1 else 's'}. "
        f"You currently have {active_count} active offer{'' if active_count == 1 else 's'}. "
        f"Please deactivate an existing offer or upgrade your tier.",
        next_tier(tier)
    )]
