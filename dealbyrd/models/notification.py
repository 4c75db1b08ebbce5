"""
In-app notifications for merchants and their delivery preferences.
"""
from datetime import datetime
from enum import Enum
from ..extensions import db


class NotificationType(str, Enum):
    AUTO_EXTEND = 'auto_extend'
    SHORTFALL_WARNING = 'shortfall_warning'
    OFFER_EXPIRED = 'offer_expired'
    OFFER_ACTIVATED = 'offer_activated'
    BUDGET_WARNING = 'budget_warning'
    BUDGET_DEPLETED = 'budget_depleted'
    MAX_CLICKS_REACHED = 'max_clicks_reached'
    TARGET_MET = 'target_met'
    POOR_PERFORMANCE = 'poor_performance'
    SYSTEM_ALERT = 'system_alert'


class NotificationPriority(str, Enum):
    LOW = 'low'
    NORMAL = 'normal'
    HIGH = 'high'
    URGENT = 'urgent'


class Notification(db.Model):
    """
    A notification shown in the merchant's notification center.
    Immutable once created except for read_at.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey('merchants.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    # Not a foreign key: notifications outlive permanently deleted offers
    offer_id = db.Column(db.String(36), index=True)

    type = db.Column(db.String(30), nullable=False)
    priority = db.Column(db.String(10), nullable=False, default=NotificationPriority.NORMAL.value)
    message = db.Column(db.Text, nullable=False)
    action_url = db.Column(db.String(500))

    read_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<Notification {self.id} {self.type} priority={self.priority}>'

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'merchant_id': self.merchant_id,
            'offer_id': self.offer_id,
            'type': self.type,
            'priority': self.priority,
            'message': self.message,
            'action_url': self.action_url,
            'is_read': self.is_read,
            'read_at': self.read_at.isoformat() if self.read_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }


class NotificationPreferences(db.Model):
    """Per-merchant toggles gating which notifications are kept and delivered."""
    __tablename__ = 'notification_preferences'

    id = db.Column(db.Integer, primary_key=True)
    merchant_id = db.Column(db.Integer, db.ForeignKey('merchants.id', ondelete='CASCADE'),
                            nullable=False, unique=True)

    # Per-type toggles
    notify_auto_extend = db.Column(db.Boolean, nullable=False, default=True)
    notify_shortfall = db.Column(db.Boolean, nullable=False, default=True)
    notify_expired = db.Column(db.Boolean, nullable=False, default=True)
    notify_activated = db.Column(db.Boolean, nullable=False, default=True)
    notify_budget_warning = db.Column(db.Boolean, nullable=False, default=True)
    notify_budget_depleted = db.Column(db.Boolean, nullable=False, default=True)
    notify_max_clicks = db.Column(db.Boolean, nullable=False, default=True)
    notify_target_met = db.Column(db.Boolean, nullable=False, default=True)
    notify_poor_performance = db.Column(db.Boolean, nullable=False, default=False)

    # Delivery channels
    sms_enabled = db.Column(db.Boolean, nullable=False, default=False)
    email_enabled = db.Column(db.Boolean, nullable=False, default=True)

    # Quiet hours, HH:MM in the merchant's timezone
    quiet_hours_enabled = db.Column(db.Boolean, nullable=False, default=False)
    quiet_hours_start = db.Column(db.String(5), default='22:00')
    quiet_hours_end = db.Column(db.String(5), default='08:00')
    timezone = db.Column(db.String(64), nullable=False, default='UTC')

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    EDITABLE_FIELDS = (
        'notify_auto_extend', 'notify_shortfall', 'notify_expired', 'notify_activated',
        'notify_budget_warning', 'notify_budget_depleted', 'notify_max_clicks',
        'notify_target_met', 'notify_poor_performance',
        'sms_enabled', 'email_enabled',
        'quiet_hours_enabled', 'quiet_hours_start', 'quiet_hours_end', 'timezone',
    )

    def __repr__(self):
        return f'<NotificationPreferences merchant={self.merchant_id}>'

    def to_dict(self):
        data = {'merchant_id': self.merchant_id}
        for field in self.EDITABLE_FIELDS:
            data[field] = getattr(self, field)
        return data
