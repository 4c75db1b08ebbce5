"""
SMS metering and pre-send quota checks.

Metering prices every batch of texts against the merchant's lifetime count:

    lifetime < 100          free trial, 0 cents
    FREEBYRD  < 3000        2.1 cents
    FREEBYRD >= 3000        1.3 cents
    other tiers             0.79 cents flat

A batch that straddles a boundary is split, and each charged segment is
appended to the month's pricing_breakdown. Prior entries are never rewritten.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..extensions import db
from ..models import Merchant, MembershipTier, SmsUsage
from ..utils.exceptions import MerchantNotFoundError, SmsQuotaError, ValidationError
from .tier_limits import (
    FREE_TRIAL_TEXTS,
    FREEBYRD_VOLUME_THRESHOLD,
    FREEBYRD_RATE_CENTS,
    FREEBYRD_VOLUME_RATE_CENTS,
    ALLOCATION_RATE_CENTS,
    cost_per_text_cents,
    get_tier_capabilities,
)

logger = logging.getLogger(__name__)

FREE_TRIAL_BAND = 'FREE_TRIAL'


def month_key(now: Optional[datetime] = None) -> str:
    """Calendar month bucket, e.g. '2026-10'."""
    return (now or datetime.utcnow()).strftime('%Y-%m')


def _band(first: int, count: int, rate_cents: Decimal, tier: str) -> dict:
    return {
        'from': first,
        'to': first + count - 1,
        'rateCents': float(rate_cents),
        'count': count,
        'amountCents': float(rate_cents * count),
        'tier': tier,
    }


def price_text_batch(tier, lifetime_before: int, count: int) -> List[dict]:
    """
    Split `count` texts, starting after lifetime text number `lifetime_before`,
    into priced bands. Zero-count segments are omitted.
    """
    tier = MembershipTier(tier)
    bands = []
    position = lifetime_before
    remaining = count

    free = min(remaining, max(0, FREE_TRIAL_TEXTS - position))
    if free:
        bands.append(_band(position + 1, free, Decimal('0'), FREE_TRIAL_BAND))
        position += free
        remaining -= free

    if tier == MembershipTier.FREEBYRD:
        standard = min(remaining, max(0, FREEBYRD_VOLUME_THRESHOLD - position))
        if standard:
            bands.append(_band(position + 1, standard, FREEBYRD_RATE_CENTS, tier.value))
            position += standard
            remaining -= standard
        if remaining:
            bands.append(_band(position + 1, remaining, FREEBYRD_VOLUME_RATE_CENTS, tier.value))
    elif remaining:
        bands.append(_band(position + 1, remaining, ALLOCATION_RATE_CENTS, tier.value))

    return bands


def get_monthly_usage(merchant_id: int, month: Optional[str] = None) -> Optional[SmsUsage]:
    return SmsUsage.query.filter_by(merchant_id=merchant_id, month=month or month_key()).first()


def record_texts_sent(merchant_id: int, count: int, now: Optional[datetime] = None) -> SmsUsage:
    """
    Meter a batch of sent texts.

    Prices the batch from the merchant's lifetime count, appends the bands to
    this month's usage row, and advances lifetime_texts_sent. The merchant
    row is locked for the duration so concurrent batches get disjoint bands.

    Raises:
        ValidationError: count is not positive
        MerchantNotFoundError: Unknown merchant
    """
    if count <= 0:
        raise ValidationError("Text count must be positive", field='count')

    merchant = Merchant.query.filter_by(id=merchant_id).with_for_update().first()
    if not merchant:
        raise MerchantNotFoundError(merchant_id)

    lifetime_before = merchant.lifetime_texts_sent or 0
    bands = price_text_batch(merchant.tier, lifetime_before, count)
    cost_cents = sum((Decimal(str(b['rateCents'])) * b['count'] for b in bands), Decimal('0'))

    merchant.lifetime_texts_sent = lifetime_before + count
    merchant.free_trial_used = merchant.lifetime_texts_sent >= FREE_TRIAL_TEXTS

    month = month_key(now)
    usage = get_monthly_usage(merchant_id, month)
    if usage is None:
        usage = SmsUsage(
            merchant_id=merchant_id,
            month=month,
            texts_sent=0,
            total_fee=Decimal('0'),
            pricing_breakdown=[]
        )
        db.session.add(usage)

    # Reassign so SQLAlchemy sees the JSON change
    usage.pricing_breakdown = list(usage.pricing_breakdown or []) + bands
    usage.texts_sent = (usage.texts_sent or 0) + count
    usage.total_fee = Decimal(usage.total_fee or 0) + cost_cents
    usage.billing_tier = merchant.tier.value

    db.session.commit()

    logger.info(
        f'Metered {count} texts for merchant {merchant_id}: '
        f'lifetime {lifetime_before} -> {merchant.lifetime_texts_sent}, {cost_cents} cents'
    )
    return usage


def check_sms_budget(merchant_id: int, count: int = 1, now: Optional[datetime] = None) -> dict:
    """
    Pre-send gate.

    NEST can never send. FREEBYRD is pay-as-you-go, so always allowed with an
    informational cost. Allocation tiers are capped by their monthly texts.
    """
    merchant = db.session.get(Merchant, merchant_id)
    if not merchant:
        raise MerchantNotFoundError(merchant_id)

    tier = merchant.tier
    lifetime = merchant.lifetime_texts_sent or 0
    rate = cost_per_text_cents(tier, lifetime)
    usage = get_monthly_usage(merchant_id, month_key(now))
    used = usage.texts_sent if usage else 0

    result = {
        'tier': tier.value,
        'texts_requested': count,
        'texts_used_this_month': used,
        'lifetime_texts_sent': lifetime,
        'cost_per_text_cents': float(rate),
        'estimated_cost_cents': float(rate * count),
        'monthly_limit': None,
        'remaining': None,
        'allowed': True,
        'reason': None,
    }

    if not get_tier_capabilities(tier).can_send_texts:
        result.update(
            allowed=False,
            remaining=0,
            reason='Text messaging is not available on NEST. Upgrade to FREEBYRD to send texts.'
        )
        return result

    if tier == MembershipTier.FREEBYRD:
        return result

    limit = get_tier_capabilities(tier).pricing.monthly_texts
    remaining = max(0, limit - used)
    result.update(monthly_limit=limit, remaining=remaining, allowed=count <= remaining)
    if not result['allowed']:
        result['reason'] = (
            f'Monthly text allocation reached ({used} of {limit} used). '
            f'Upgrade your tier for more texts.'
        )
    return result


def ensure_can_send(merchant_id: int, count: int) -> dict:
    """check_sms_budget, raising SmsQuotaError when denied."""
    budget = check_sms_budget(merchant_id, count)
    if not budget['allowed']:
        raise SmsQuotaError(budget['reason'])
    return budget
