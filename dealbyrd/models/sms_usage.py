"""
Monthly SMS usage with an append-only pricing audit trail.
"""
from datetime import datetime
from decimal import Decimal
from ..extensions import db


class SmsUsage(db.Model):
    """
    One row per merchant per calendar month ("YYYY-MM").

    pricing_breakdown holds one entry per rate band actually charged:
        {from, to, rateCents, count, amountCents, tier}
    `from`/`to` are lifetime text numbers, so entries never overlap.
    """
    __tablename__ = 'sms_usage'
    __table_args__ = (
        db.UniqueConstraint('merchant_id', 'month', name='uq_sms_usage_merchant_month'),
    )

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey('merchants.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    month = db.Column(db.String(7), nullable=False)

    texts_sent = db.Column(db.Integer, nullable=False, default=0)
    total_fee = db.Column(db.Numeric(12, 4), nullable=False, default=Decimal('0'))  # cents
    billing_tier = db.Column(db.String(20))
    pricing_breakdown = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<SmsUsage merchant={self.merchant_id} {self.month} texts={self.texts_sent}>'

    def to_dict(self):
        return {
            'merchant_id': self.merchant_id,
            'month': self.month,
            'texts_sent': self.texts_sent or 0,
            'total_fee_cents': float(self.total_fee or 0),
            'billing_tier': self.billing_tier,
            'pricing_breakdown': list(self.pricing_breakdown or [])
        }
