"""
Tests for tier capability gates and the tier table.
"""
import pytest
from decimal import Decimal

from dealbyrd.models import MembershipTier
from dealbyrd.services.tier_limits import get_tier_capabilities, next_tier, cost_per_text_cents
from dealbyrd.services.tier_validation import validate_offer_against_tier, validate_active_offer_count


def _fields(errors):
    return {e['field'] for e in errors}


class TestTierTable:
    """Tests for the static capability table."""

    @pytest.mark.parametrize('tier,max_active', [
        ('NEST', 1), ('FREEBYRD', 3), ('ASCEND', 5),
        ('SOAR', 20), ('SOAR_PLUS', 50), ('SOAR_PLATINUM', 100),
    ])
    def test_max_active_offers(self, tier, max_active):
        assert get_tier_capabilities(tier).max_active_offers == max_active

    def test_glide_alias(self):
        """GLIDE resolves to ASCEND everywhere."""
        assert MembershipTier('GLIDE') is MembershipTier.ASCEND
        assert get_tier_capabilities('glide').tier is MembershipTier.ASCEND

    def test_next_tier(self):
        assert next_tier('NEST') is MembershipTier.FREEBYRD
        assert next_tier('SOAR_PLATINUM') is MembershipTier.SOAR_PLATINUM

    def test_freebyrd_volume_pricing(self):
        """FREEBYRD drops to 1.3 cents at 3000 lifetime texts."""
        assert cost_per_text_cents('FREEBYRD', 2999) == Decimal('2.1')
        assert cost_per_text_cents('FREEBYRD', 3000) == Decimal('1.3')
        assert cost_per_text_cents('SOAR', 10) == Decimal('0.79')
        assert cost_per_text_cents('NEST', 0) == Decimal('0')


class TestValidateOfferAgainstTier:
    """Tests for validate_offer_against_tier."""

    def test_drafts_never_restricted(self):
        """Anything goes while an offer is a draft."""
        data = {'offer_type': 'bogo', 'add_type': 'timer', 'auto_extend': True}
        assert validate_offer_against_tier(data, 'NEST', 'draft') == []

    def test_nest_collects_every_violation(self):
        """All violations are reported, not just the first."""
        data = {
            'offer_type': 'bogo',
            'add_type': 'timer',
            'auto_extend': True,
            'image_url': 'https://example.com/taco.jpg',
            'get_new_customers_enabled': True,
        }

        errors = validate_offer_against_tier(data, 'NEST', 'active')

        assert _fields(errors) == {'offer_type', 'add_type', 'auto_extend', 'media', 'get_new_customers_enabled'}
        by_field = {e['field']: e for e in errors}
        assert by_field['offer_type']['upgradeRequired'] == 'FREEBYRD'
        assert by_field['add_type']['upgradeRequired'] == 'ASCEND'
        assert by_field['get_new_customers_enabled']['upgradeRequired'] == 'SOAR'

    def test_freebyrd_delivery_methods(self):
        """FREEBYRD cannot use MMS coupons; wallet passes need SOAR."""
        mms = validate_offer_against_tier(
            {'redemption_type': 'coupon', 'coupon_delivery_method': 'mms_based_coupons'}, 'FREEBYRD', 'active')
        wallet = validate_offer_against_tier(
            {'redemption_type': 'coupon', 'coupon_delivery_method': 'mobile_wallet_passes'}, 'FREEBYRD', 'active')

        assert mms[0]['upgradeRequired'] == 'ASCEND'
        assert wallet[0]['upgradeRequired'] == 'SOAR'
        assert 'wallet' in wallet[0]['message'].lower()

    def test_ascend_allows_countdown_and_folders(self):
        data = {'add_type': 'both', 'campaign_folder_id': 'abc', 'notify_on_target_met': True}
        assert validate_offer_against_tier(data, 'ASCEND', 'active') == []

    def test_soar_allows_everything(self):
        data = {
            'offer_type': 'spend_threshold',
            'add_type': 'quantity',
            'get_new_customers_enabled': True,
            'redemption_type': 'coupon',
            'coupon_delivery_method': 'mobile_wallet_passes',
        }
        assert validate_offer_against_tier(data, 'SOAR', 'active') == []


class TestActiveOfferCount:
    """Tests for validate_active_offer_count."""

    def test_nest_second_active_offer_blocked(self, make_merchant, make_offer):
        merchant = make_merchant(tier='NEST')
        make_offer(merchant, status='active')

        errors = validate_active_offer_count(merchant.id, 'NEST')

        assert len(errors) == 1
        assert errors[0]['field'] == 'activeOfferCount'
        assert errors[0]['upgradeRequired'] == 'FREEBYRD'
        assert 'maximum 1 active offer.' in errors[0]['message']

    def test_current_offer_excluded(self, make_merchant, make_offer):
        """Editing the one active offer does not count against itself."""
        merchant = make_merchant(tier='NEST')
        offer = make_offer(merchant, status='active')

        assert validate_active_offer_count(merchant.id, 'NEST', current_offer_id=offer.id) == []

    def test_deleted_and_draft_offers_not_counted(self, make_merchant, make_offer):
        merchant = make_merchant(tier='NEST')
        make_offer(merchant, status='active', is_deleted=True)
        make_offer(merchant, status='draft')

        assert validate_active_offer_count(merchant.id, 'NEST') == []
