"""
Merchant model and membership tiers.

A merchant owns offers and carries three budget ledgers:
- merchant_bank: prepaid funds, integer cents
- merchant_text_budget: dollars reserved for SMS sends
- merchant_rips_budget: dollars funding referral-driven shares (RIPS)
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..extensions import db


class MembershipTier(str, Enum):
    """Merchant subscription level."""
    NEST = 'NEST'
    FREEBYRD = 'FREEBYRD'
    ASCEND = 'ASCEND'
    SOAR = 'SOAR'
    SOAR_PLUS = 'SOAR_PLUS'
    SOAR_PLATINUM = 'SOAR_PLATINUM'

    @classmethod
    def _missing_(cls, value):
        # GLIDE was renamed to ASCEND; older rows and clients still send it
        if isinstance(value, str):
            upper = value.strip().upper()
            if upper == 'GLIDE':
                return cls.ASCEND
            for member in cls:
                if member.value == upper:
                    return member
        return None


# Upgrade path, lowest to highest
TIER_ORDER = [
    MembershipTier.NEST,
    MembershipTier.FREEBYRD,
    MembershipTier.ASCEND,
    MembershipTier.SOAR,
    MembershipTier.SOAR_PLUS,
    MembershipTier.SOAR_PLATINUM,
]


class Merchant(db.Model):
    """Business account that publishes offers."""
    __tablename__ = 'merchants'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    business_name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))

    membership_tier = db.Column(db.String(20), nullable=False, default=MembershipTier.NEST.value)

    # SMS metering
    lifetime_texts_sent = db.Column(db.Integer, nullable=False, default=0)
    free_trial_used = db.Column(db.Boolean, nullable=False, default=False)

    # Ledgers (never negative)
    merchant_bank = db.Column(db.Integer, nullable=False, default=0)
    merchant_text_budget = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    merchant_rips_budget = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    offers = db.relationship('Offer', backref='merchant', lazy='dynamic', cascade='all, delete-orphan')
    campaign_folders = db.relationship('CampaignFolder', backref='merchant', lazy='dynamic',
                                       cascade='all, delete-orphan')
    notification_preferences = db.relationship('NotificationPreferences', backref='merchant',
                                               uselist=False, cascade='all, delete-orphan')

    @property
    def tier(self) -> MembershipTier:
        return MembershipTier(self.membership_tier or MembershipTier.NEST.value)

    def __repr__(self):
        return f'<Merchant {self.business_name} tier={self.membership_tier}>'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'business_name': self.business_name,
            'phone': self.phone,
            'membership_tier': self.tier.value,
            'lifetime_texts_sent': self.lifetime_texts_sent or 0,
            'free_trial_used': bool(self.free_trial_used),
            'merchant_bank': self.merchant_bank or 0,
            'merchant_text_budget': float(self.merchant_text_budget or 0),
            'merchant_rips_budget': float(self.merchant_rips_budget or 0),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
