"""
Shared pytest fixtures for DealByrd.

The app fixture keeps one application context open for the whole test so
fixtures and tests share a database session. After API calls, expire the
session before reading rows the request changed.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from dealbyrd import create_app
from dealbyrd.extensions import db
from dealbyrd.models import Merchant, Offer, NotificationPreferences


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


@pytest.fixture
def make_merchant(app):
    """Factory for merchants on a given tier."""
    counter = {'n': 0}

    def _make(tier='ASCEND', bank_cents=0, text_budget='0', rips_budget='0',
              lifetime_texts=0, phone=None, email=None):
        counter['n'] += 1
        merchant = Merchant(
            email=email or f'merchant{counter["n"]}@example.com',
            business_name=f'Taco Shop {counter["n"]}',
            phone=phone,
            membership_tier=tier,
            merchant_bank=bank_cents,
            merchant_text_budget=Decimal(text_budget),
            merchant_rips_budget=Decimal(rips_budget),
            lifetime_texts_sent=lifetime_texts,
            free_trial_used=lifetime_texts >= 100
        )
        db.session.add(merchant)
        db.session.commit()
        return merchant

    return _make


@pytest.fixture
def sample_merchant(make_merchant):
    """An ASCEND merchant with $10 in the bank."""
    return make_merchant(tier='ASCEND', bank_cents=1000)


@pytest.fixture
def make_offer(app):
    """Factory for offers with sensible defaults."""

    def _make(merchant, **overrides):
        now = datetime.utcnow()
        fields = dict(
            merchant_id=merchant.id,
            title='Half off tacos',
            description='All tacos 50% off',
            menu_item='Tacos',
            original_price=Decimal('10.00'),
            zip_code='78701',
            offer_type='percentage',
            discount_value=Decimal('50'),
            max_clicks_allowed=100,
            click_budget_dollars=Decimal('0'),
            status='active',
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=2),
        )
        fields.update(overrides)
        offer = Offer(**fields)
        db.session.add(offer)
        db.session.commit()
        return offer

    return _make


@pytest.fixture
def sample_offer(sample_merchant, make_offer):
    return make_offer(sample_merchant)


@pytest.fixture
def make_preferences(app):
    """Factory for notification preferences."""

    def _make(merchant, **overrides):
        prefs = NotificationPreferences(merchant_id=merchant.id, **overrides)
        db.session.add(prefs)
        db.session.commit()
        return prefs

    return _make


@pytest.fixture
def auth_headers(sample_merchant):
    """Headers authenticating as sample_merchant (dev-mode header auth)."""
    return {
        'X-Merchant-ID': str(sample_merchant.id),
        'Content-Type': 'application/json'
    }


