"""
Tests for SMS metering and the pre-send budget check.
"""
import pytest
from datetime import datetime
from decimal import Decimal

from dealbyrd.extensions import db
from dealbyrd.models import SmsUsage
from dealbyrd.services.sms_usage_service import (
    price_text_batch,
    record_texts_sent,
    check_sms_budget,
    ensure_can_send,
    month_key,
)
from dealbyrd.utils.exceptions import SmsQuotaError, ValidationError

OCT = datetime(2026, 10, 19, 15, 0)


class TestPriceTextBatch:
    """Tests for splitting a batch into priced bands."""

    def test_freebyrd_batch_straddling_volume_threshold(self):
        """2998 + 5 texts: 2 at 2.1 cents, 3 at 1.3 cents."""
        bands = price_text_batch('FREEBYRD', 2998, 5)

        assert len(bands) == 2
        assert bands[0]['from'] == 2999 and bands[0]['to'] == 3000
        assert bands[0]['count'] == 2
        assert bands[0]['rateCents'] == 2.1
        assert bands[1]['from'] == 3001 and bands[1]['to'] == 3003
        assert bands[1]['count'] == 3
        assert bands[1]['rateCents'] == 1.3

    def test_free_trial_split(self):
        """A batch that crosses text 100 is part free, part charged."""
        bands = price_text_batch('FREEBYRD', 95, 10)

        assert bands[0]['tier'] == 'FREE_TRIAL'
        assert bands[0]['count'] == 5
        assert bands[0]['amountCents'] == 0
        assert bands[1]['count'] == 5
        assert bands[1]['rateCents'] == 2.1

    def test_allocation_tier_flat_rate(self):
        """ASCEND and above pay 0.79 cents per text after the trial."""
        bands = price_text_batch('ASCEND', 500, 100)

        assert len(bands) == 1
        assert bands[0]['rateCents'] == 0.79
        assert bands[0]['tier'] == 'ASCEND'

    def test_band_counts_sum_to_batch(self):
        """Every text lands in exactly one band."""
        bands = price_text_batch('FREEBYRD', 50, 4000)
        assert sum(b['count'] for b in bands) == 4000


class TestRecordTextsSent:
    """Tests for metering sent texts."""

    def test_records_usage_and_lifetime(self, make_merchant):
        """Metering advances lifetime count and writes the month row."""
        merchant = make_merchant(tier='FREEBYRD', lifetime_texts=2998)

        usage = record_texts_sent(merchant.id, 5, now=OCT)

        assert merchant.lifetime_texts_sent == 3003
        assert usage.month == '2026-10'
        assert usage.texts_sent == 5
        # 2 * 2.1 + 3 * 1.3
        assert Decimal(str(usage.total_fee)) == Decimal('8.1')
        assert len(usage.pricing_breakdown) == 2

    def test_breakdown_is_appended(self, make_merchant):
        """A second batch appends bands without rewriting earlier ones."""
        merchant = make_merchant(tier='FREEBYRD', lifetime_texts=200)

        record_texts_sent(merchant.id, 3, now=OCT)
        usage = record_texts_sent(merchant.id, 4, now=OCT)

        assert usage.texts_sent == 7
        assert [b['count'] for b in usage.pricing_breakdown] == [3, 4]
        assert SmsUsage.query.filter_by(merchant_id=merchant.id).count() == 1

    def test_free_trial_flag_set(self, make_merchant):
        """Reaching 100 lifetime texts marks the free trial used."""
        merchant = make_merchant(tier='FREEBYRD', lifetime_texts=98)

        record_texts_sent(merchant.id, 2, now=OCT)

        assert merchant.free_trial_used is True

    def test_rejects_non_positive_count(self, make_merchant):
        merchant = make_merchant(tier='FREEBYRD')
        with pytest.raises(ValidationError):
            record_texts_sent(merchant.id, 0)


class TestCheckSmsBudget:
    """Tests for the pre-send gate."""

    def test_nest_cannot_send(self, make_merchant):
        """NEST is always denied."""
        merchant = make_merchant(tier='NEST')

        budget = check_sms_budget(merchant.id, 1)

        assert budget['allowed'] is False
        assert budget['remaining'] == 0
        assert 'FREEBYRD' in budget['reason']

    def test_freebyrd_is_pay_as_you_go(self, make_merchant):
        """FREEBYRD has no monthly cap and reports an estimated cost."""
        merchant = make_merchant(tier='FREEBYRD', lifetime_texts=500)

        budget = check_sms_budget(merchant.id, 10)

        assert budget['allowed'] is True
        assert budget['monthly_limit'] is None
        assert budget['cost_per_text_cents'] == 2.1
        assert budget['estimated_cost_cents'] == pytest.approx(21.0)

    def test_allocation_tier_limited_by_month(self, make_merchant):
        """ASCEND may send up to 1600 texts a month."""
        merchant = make_merchant(tier='ASCEND')
        db.session.add(SmsUsage(merchant_id=merchant.id, month=month_key(), texts_sent=1590,
                                total_fee=Decimal('0'), pricing_breakdown=[]))
        db.session.commit()

        assert check_sms_budget(merchant.id, 10)['allowed'] is True

        denied = check_sms_budget(merchant.id, 11)
        assert denied['allowed'] is False
        assert denied['remaining'] == 10
        assert denied['monthly_limit'] == 1600

    def test_glide_is_treated_as_ascend(self, make_merchant):
        """Legacy GLIDE rows get ASCEND limits."""
        merchant = make_merchant(tier='GLIDE')

        budget = check_sms_budget(merchant.id, 1)

        assert budget['tier'] == 'ASCEND'
        assert budget['monthly_limit'] == 1600

    def test_ensure_can_send_raises(self, make_merchant):
        merchant = make_merchant(tier='NEST')
        with pytest.raises(SmsQuotaError):
            ensure_can_send(merchant.id, 1)
