"""
Static per-tier capability table.

Everything a merchant's membership tier unlocks (offer volume, feature
toggles, delivery methods, SMS pricing) lives here so validation, metering
and the bank all read the same numbers.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from ..models.merchant import MembershipTier, TIER_ORDER
from ..models.offer import OfferType
from ..models.delivery_config import DeliveryMethod

# Shared SMS constants
FREE_TRIAL_TEXTS = 100
FREEBYRD_VOLUME_THRESHOLD = 3000
FREEBYRD_RATE_CENTS = Decimal('2.1')
FREEBYRD_VOLUME_RATE_CENTS = Decimal('1.3')
ALLOCATION_RATE_CENTS = Decimal('0.79')

# Cost of acquiring one new customer; bank floor for get_new_customers_enabled
MIN_ACQUISITION_BALANCE_CENTS = 165

ALL_OFFER_TYPES = tuple(t.value for t in OfferType)


@dataclass(frozen=True)
class TierPricing:
    text_cost_start_cents: Decimal
    text_cost_after_threshold_cents: Optional[Decimal] = None
    monthly_texts: Optional[int] = None


@dataclass(frozen=True)
class TierCapabilities:
    tier: MembershipTier
    max_active_offers: int
    allowed_offer_types: Tuple[str, ...]
    allow_countdown: bool
    allow_folders: bool
    allow_notifications: bool
    allow_auto_extend: bool
    allow_media: bool
    allow_customer_acquisition: bool
    allowed_delivery_methods: Tuple[str, ...]
    pricing: TierPricing

    @property
    def can_send_texts(self) -> bool:
        return self.pricing.text_cost_start_cents > 0

    def to_dict(self):
        return {
            'tier': self.tier.value,
            'max_active_offers': self.max_active_offers,
            'allowed_offer_types': list(self.allowed_offer_types),
            'allow_countdown': self.allow_countdown,
            'allow_folders': self.allow_folders,
            'allow_notifications': self.allow_notifications,
            'allow_auto_extend': self.allow_auto_extend,
            'allow_media': self.allow_media,
            'allow_customer_acquisition': self.allow_customer_acquisition,
            'allowed_delivery_methods': list(self.allowed_delivery_methods),
            'pricing': {
                'text_cost_start_cents': float(self.pricing.text_cost_start_cents),
                'text_cost_after_threshold_cents': (
                    float(self.pricing.text_cost_after_threshold_cents)
                    if self.pricing.text_cost_after_threshold_cents is not None else None
                ),
                'monthly_texts': self.pricing.monthly_texts
            }
        }


_FREEBYRD_METHODS = (
    DeliveryMethod.COUPON_CODES.value,
    DeliveryMethod.TEXT_MESSAGE_ALERTS.value,
)
_ASCEND_METHODS = _FREEBYRD_METHODS + (
    DeliveryMethod.MMS_BASED_COUPONS.value,
    DeliveryMethod.MOBILE_APP_BASED_COUPONS.value,
)
_SOAR_METHODS = _ASCEND_METHODS + (DeliveryMethod.MOBILE_WALLET_PASSES.value,)


def _soar_family(tier: MembershipTier, max_active: int, monthly_texts: int) -> TierCapabilities:
    return TierCapabilities(
        tier=tier,
        max_active_offers=max_active,
        allowed_offer_types=ALL_OFFER_TYPES,
        allow_countdown=True,
        allow_folders=True,
        allow_notifications=True,
        allow_auto_extend=True,
        allow_media=True,
        allow_customer_acquisition=True,
        allowed_delivery_methods=_SOAR_METHODS,
        pricing=TierPricing(ALLOCATION_RATE_CENTS, monthly_texts=monthly_texts),
    )


TIER_CAPABILITIES = {
    MembershipTier.NEST: TierCapabilities(
        tier=MembershipTier.NEST,
        max_active_offers=1,
        allowed_offer_types=(OfferType.PERCENTAGE.value, OfferType.DOLLAR_AMOUNT.value),
        allow_countdown=False,
        allow_folders=False,
        allow_notifications=False,
        allow_auto_extend=False,
        allow_media=False,
        allow_customer_acquisition=False,
        allowed_delivery_methods=(DeliveryMethod.COUPON_CODES.value,),
        pricing=TierPricing(Decimal('0')),
    ),
    MembershipTier.FREEBYRD: TierCapabilities(
        tier=MembershipTier.FREEBYRD,
        max_active_offers=3,
        allowed_offer_types=ALL_OFFER_TYPES,
        allow_countdown=False,
        allow_folders=False,
        allow_notifications=False,
        allow_auto_extend=False,
        allow_media=True,
        allow_customer_acquisition=False,
        allowed_delivery_methods=_FREEBYRD_METHODS,
        pricing=TierPricing(FREEBYRD_RATE_CENTS, FREEBYRD_VOLUME_RATE_CENTS),
    ),
    MembershipTier.ASCEND: TierCapabilities(
        tier=MembershipTier.ASCEND,
        max_active_offers=5,
        allowed_offer_types=ALL_OFFER_TYPES,
        allow_countdown=True,
        allow_folders=True,
        allow_notifications=True,
        allow_auto_extend=True,
        allow_media=True,
        allow_customer_acquisition=False,
        allowed_delivery_methods=_ASCEND_METHODS,
        pricing=TierPricing(ALLOCATION_RATE_CENTS, monthly_texts=1600),
    ),
    MembershipTier.SOAR: _soar_family(MembershipTier.SOAR, 20, 2500),
    MembershipTier.SOAR_PLUS: _soar_family(MembershipTier.SOAR_PLUS, 50, 7700),
    MembershipTier.SOAR_PLATINUM: _soar_family(MembershipTier.SOAR_PLATINUM, 100, 14000),
}


def get_tier_capabilities(tier) -> TierCapabilities:
    """Capabilities for a tier (accepts enum or string, including legacy GLIDE)."""
    return TIER_CAPABILITIES[MembershipTier(tier)]


def next_tier(tier) -> MembershipTier:
    """Next tier up the ladder; the top tier maps to itself."""
    index = TIER_ORDER.index(MembershipTier(tier))
    return TIER_ORDER[min(index + 1, len(TIER_ORDER) - 1)]


def cost_per_text_cents(tier, lifetime_texts: int) -> Decimal:
    """
    Current per-text price in cents for buying or sending texts.

    FREEBYRD drops to the volume rate once lifetime sends reach 3000;
    allocation tiers pay a flat rate; NEST cannot send (0).
    """
    pricing = get_tier_capabilities(tier).pricing
    if (pricing.text_cost_after_threshold_cents is not None
            and lifetime_texts >= FREEBYRD_VOLUME_THRESHOLD):
        return pricing.text_cost_after_threshold_cents
    return pricing.text_cost_start_cents
