"""
Offer and CampaignFolder models.

Offer lifecycle:
    draft/active (created by merchant)
    -> active (activate sweep sets activated_at once)
    -> expired (expire sweep once end_date passes)
    -> soft deleted -> resurrected (draft, needs_reintegration)
    -> reintegrated -> permanently deleted
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from ..extensions import db


def _uuid() -> str:
    return str(uuid.uuid4())


class OfferStatus(str, Enum):
    DRAFT = 'draft'
    ACTIVE = 'active'
    PAUSED = 'paused'
    EXPIRED = 'expired'


class OfferType(str, Enum):
    PERCENTAGE = 'percentage'
    DOLLAR_AMOUNT = 'dollar_amount'
    BOGO = 'bogo'
    SPEND_THRESHOLD = 'spend_threshold'


class AddType(str, Enum):
    """Display style; everything except REGULAR shows a countdown."""
    REGULAR = 'regular'
    TIMER = 'timer'
    QUANTITY = 'quantity'
    BOTH = 'both'


class RedemptionType(str, Enum):
    COUPON = 'coupon'
    PREPAYMENT_OFFER = 'prepayment_offer'


class FolderStatus(str, Enum):
    DRAFT = 'draft'
    CAMPAIGN = 'campaign'
    ARCHIVED = 'archived'


class CampaignFolder(db.Model):
    """
    Grouping of offers. Once promoted to a campaign the folder is locked and
    its offers can no longer be modified.
    """
    __tablename__ = 'campaign_folders'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    merchant_id = db.Column(db.Integer, db.ForeignKey('merchants.id', ondelete='CASCADE'),
                            nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default=FolderStatus.DRAFT.value)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    offers = db.relationship('Offer', backref='campaign_folder', lazy='dynamic')

    def __repr__(self):
        return f'<CampaignFolder {self.name} status={self.status}>'

    def to_dict(self, include_counts=False):
        data = {
            'id': self.id,
            'merchant_id': self.merchant_id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'is_locked': bool(self.is_locked),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_counts:
            data['offer_count'] = self.offers.filter_by(is_deleted=False).count()
        return data


class Offer(db.Model):
    """Time-boxed promotional offer published by a merchant."""
    __tablename__ = 'offers'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    merchant_id = db.Column(db.Integer, db.ForeignKey('merchants.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    campaign_folder_id = db.Column(db.String(36), db.ForeignKey('campaign_folders.id', ondelete='SET NULL'),
                                   nullable=True, index=True)

    # Content
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    menu_item = db.Column(db.String(255))
    original_price = db.Column(db.Numeric(10, 2))
    zip_code = db.Column(db.String(10))
    image_url = db.Column(db.String(500))
    video_url = db.Column(db.String(500))

    # Deal mechanics
    offer_type = db.Column(db.String(30), nullable=False, default=OfferType.PERCENTAGE.value)
    discount_value = db.Column(db.Numeric(10, 2))
    add_type = db.Column(db.String(20), nullable=False, default=AddType.REGULAR.value)
    redemption_type = db.Column(db.String(30), nullable=False, default=RedemptionType.COUPON.value)
    coupon_delivery_method = db.Column(db.String(40))
    delivery_config = db.Column(db.JSON)

    # Budgets
    max_clicks_allowed = db.Column(db.Integer)
    click_budget_dollars = db.Column(db.Numeric(10, 2))
    text_budget_dollars = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    rips_budget_dollars = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))
    get_new_customers_enabled = db.Column(db.Boolean, nullable=False, default=False)

    # Lifecycle
    status = db.Column(db.String(20), nullable=False, default=OfferStatus.DRAFT.value, index=True)
    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime, index=True)
    activated_at = db.Column(db.DateTime)  # set once by the activate sweep
    needs_reintegration = db.Column(db.Boolean, nullable=False, default=False)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Sales target / auto-extend
    units_sold = db.Column(db.Integer, nullable=False, default=0)
    target_units = db.Column(db.Integer)
    auto_extend = db.Column(db.Boolean, nullable=False, default=False)
    extension_days = db.Column(db.Integer, nullable=False, default=3)
    notify_on_shortfall = db.Column(db.Boolean, nullable=False, default=True)
    last_auto_extended_at = db.Column(db.DateTime)
    notify_on_target_met = db.Column(db.Boolean, nullable=False, default=False)
    notify_on_poor_performance = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Offer {self.id} "{self.title}" status={self.status}>'

    def stage(self, now: datetime = None) -> str:
        """
        Where the offer sits on the merchant's timeline:
        draft, future, current, expired, or its raw status otherwise.
        """
        now = now or datetime.utcnow()

        if self.status == OfferStatus.EXPIRED.value or (self.end_date and now > self.end_date):
            return 'expired'
        if self.status == OfferStatus.DRAFT.value:
            return 'draft'
        if self.start_date and self.start_date > now:
            return 'future'
        if self.status == OfferStatus.ACTIVE.value:
            return 'current'
        return self.status

    def to_dict(self, now: datetime = None):
        return {
            'id': self.id,
            'merchant_id': self.merchant_id,
            'campaign_folder_id': self.campaign_folder_id,
            'title': self.title,
            'description': self.description,
            'menu_item': self.menu_item,
            'original_price': float(self.original_price) if self.original_price is not None else None,
            'zip_code': self.zip_code,
            'image_url': self.image_url,
            'video_url': self.video_url,
            'offer_type': self.offer_type,
            'discount_value': float(self.discount_value) if self.discount_value is not None else None,
            'add_type': self.add_type,
            'redemption_type': self.redemption_type,
            'coupon_delivery_method': self.coupon_delivery_method,
            'delivery_config': self.delivery_config,
            'max_clicks_allowed': self.max_clicks_allowed,
            'click_budget_dollars': float(self.click_budget_dollars) if self.click_budget_dollars is not None else None,
            'text_budget_dollars': float(self.text_budget_dollars or 0),
            'rips_budget_dollars': float(self.rips_budget_dollars or 0),
            'get_new_customers_enabled': bool(self.get_new_customers_enabled),
            'status': self.status,
            'stage': self.stage(now),
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'activated_at': self.activated_at.isoformat() if self.activated_at else None,
            'needs_reintegration': bool(self.needs_reintegration),
            'is_deleted': bool(self.is_deleted),
            'units_sold': self.units_sold or 0,
            'target_units': self.target_units,
            'auto_extend': bool(self.auto_extend),
            'extension_days': self.extension_days,
            'notify_on_shortfall': bool(self.notify_on_shortfall),
            'last_auto_extended_at': self.last_auto_extended_at.isoformat() if self.last_auto_extended_at else None,
            'notify_on_target_met': bool(self.notify_on_target_met),
            'notify_on_poor_performance': bool(self.notify_on_poor_performance),
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
