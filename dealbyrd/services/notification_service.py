"""
Merchant notification dispatcher.

Every notification goes through `NotificationService.notify`:

1. No preferences on file -> always stored.
2. urgent/high priority and system alerts skip the per-type toggles.
3. Otherwise the toggle for the notification type decides.
4. During quiet hours normal/low notifications are dropped (not deferred).
5. Once stored, SMS goes out for urgent/high and email for urgent, each only
   if that channel is enabled.

Delivery is best effort: a failed SMS or email is logged and never undoes
the stored notification.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from ..extensions import db
from ..models import (
    Merchant,
    Notification,
    NotificationPreferences,
    NotificationType,
    NotificationPriority,
)
from ..utils.exceptions import ValidationError
from .sms_service import TwilioSmsService

logger = logging.getLogger(__name__)

BYPASS_PRIORITIES = (NotificationPriority.URGENT, NotificationPriority.HIGH)


def preference_enabled(prefs: NotificationPreferences, notification_type: NotificationType) -> bool:
    """Per-type toggle. Every NotificationType must be handled here."""
    if notification_type is NotificationType.AUTO_EXTEND:
        return prefs.notify_auto_extend
    if notification_type is NotificationType.SHORTFALL_WARNING:
        return prefs.notify_shortfall
    if notification_type is NotificationType.OFFER_EXPIRED:
        return prefs.notify_expired
    if notification_type is NotificationType.OFFER_ACTIVATED:
        return prefs.notify_activated
    if notification_type is NotificationType.BUDGET_WARNING:
        return prefs.notify_budget_warning
    if notification_type is NotificationType.BUDGET_DEPLETED:
        return prefs.notify_budget_depleted
    if notification_type is NotificationType.MAX_CLICKS_REACHED:
        return prefs.notify_max_clicks
    if notification_type is NotificationType.TARGET_MET:
        return prefs.notify_target_met
    if notification_type is NotificationType.POOR_PERFORMANCE:
        return prefs.notify_poor_performance
    if notification_type is NotificationType.SYSTEM_ALERT:
        return True
    raise ValueError(f"Unhandled notification type: {notification_type}")


def local_time(now: datetime, timezone: Optional[str]) -> datetime:
    """Convert naive UTC to the merchant's wall clock."""
    try:
        tz = ZoneInfo(timezone or 'UTC')
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{timezone}', using UTC for quiet hours")
        tz = ZoneInfo('UTC')
    return now.replace(tzinfo=ZoneInfo('UTC')).astimezone(tz)


def is_in_quiet_hours(prefs: NotificationPreferences, now: Optional[datetime] = None) -> bool:
    """
    True when quiet hours are on and the local time is in [start, end).
    Windows crossing midnight (22:00-08:00) wrap around.
    """
    if not prefs.quiet_hours_enabled or not prefs.quiet_hours_start or not prefs.quiet_hours_end:
        return False

    current = local_time(now or datetime.utcnow(), prefs.timezone).strftime('%H:%M')
    start, end = prefs.quiet_hours_start, prefs.quiet_hours_end

    if start <= end:
        return start <= current < end
    return current >= start or current < end


def should_send_notification(prefs: Optional[NotificationPreferences], notification_type: NotificationType,
                             priority: NotificationPriority, now: Optional[datetime] = None) -> bool:
    if prefs is None:
        return True

    bypass = priority in BYPASS_PRIORITIES or notification_type is NotificationType.SYSTEM_ALERT

    if not bypass and not preference_enabled(prefs, notification_type):
        return False

    if priority not in BYPASS_PRIORITIES and is_in_quiet_hours(prefs, now):
        return False

    return True


def should_send_to_channel(prefs: NotificationPreferences, channel: str, priority: NotificationPriority) -> bool:
    """urgent -> SMS and email, high -> SMS only, normal/low -> in-app only."""
    if channel == 'sms':
        return bool(prefs.sms_enabled) and priority in BYPASS_PRIORITIES
    if channel == 'email':
        return bool(prefs.email_enabled) and priority is NotificationPriority.URGENT
    return False


def _offer_url(offer_id: str) -> str:
    return f'/offer-form/{offer_id}'


class NotificationService:
    """Stores merchant notifications and fans them out to SMS/email."""

    def __init__(self, sms_client: TwilioSmsService = None):
        self.sms_client = sms_client or TwilioSmsService()

    # ==================== Delivery ====================

    def _get_email_client(self) -> Optional[SendGridAPIClient]:
        api_key = current_app.config.get('SENDGRID_API_KEY')
        if not api_key:
            logger.warning("SENDGRID_API_KEY not configured")
            return None
        return SendGridAPIClient(api_key=api_key)

    def _send_email(self, merchant: Merchant, notification: Notification) -> Dict[str, Any]:
        client = self._get_email_client()
        if not client:
            return {'success': False, 'error': 'SendGrid not configured'}

        subject = f"DealByrd: {notification.type.replace('_', ' ').title()}"
        link = ''
        if notification.action_url:
            link = f"\n\n{current_app.config.get('APP_BASE_URL', '')}{notification.action_url}"

        try:
            message = Mail(
                from_email=Email(current_app.config['SENDGRID_FROM_EMAIL'], current_app.config['SENDGRID_FROM_NAME']),
                to_emails=To(merchant.email, merchant.business_name),
                subject=subject,
                plain_text_content=Content("text/plain", f"{notification.message}{link}")
            )
            response = client.send(message)

            if response.status_code in (200, 202):
                logger.info(f"Email sent to {merchant.email}: {subject}")
                return {'success': True, 'status_code': response.status_code}

            logger.error(f"SendGrid error: {response.status_code}")
            return {'success': False, 'error': f"Status code: {response.status_code}"}

        except Exception as e:
            logger.error(f"Failed to send email to {merchant.email}: {e}")
            return {'success': False, 'error': str(e)}

    def _deliver(self, merchant: Merchant, prefs: NotificationPreferences,
                 notification: Notification, priority: NotificationPriority) -> Dict[str, Any]:
        delivery = {}

        if should_send_to_channel(prefs, 'sms', priority):
            if merchant.phone:
                delivery['sms'] = self.sms_client.send_sms(merchant.phone, f"DealByrd: {notification.message}")
            else:
                delivery['sms'] = {'success': False, 'error': 'Merchant has no phone number'}

        if should_send_to_channel(prefs, 'email', priority):
            delivery['email'] = self._send_email(merchant, notification)

        for channel, result in delivery.items():
            if not result.get('success'):
                logger.warning(
                    f"Notification {notification.id} {channel} delivery failed: {result.get('error')}"
                )
        return delivery

    # ==================== Dispatch ====================

    def notify(
        self,
        merchant_id: int,
        notification_type,
        message: str,
        priority='normal',
        offer_id: Optional[str] = None,
        action_url: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[Notification]:
        """
        Store a notification if preferences allow it, then deliver it.

        Returns:
            The stored Notification, or None if it was filtered out
        """
        notification_type = NotificationType(notification_type)
        priority = NotificationPriority(priority)

        prefs = NotificationPreferences.query.filter_by(merchant_id=merchant_id).first()

        if not should_send_notification(prefs, notification_type, priority, now):
            logger.info(
                f"Notification {notification_type.value} for merchant {merchant_id} "
                f"suppressed by preferences or quiet hours"
            )
            return None

        notification = Notification(
            merchant_id=merchant_id,
            offer_id=offer_id,
            type=notification_type.value,
            priority=priority.value,
            message=message,
            action_url=action_url
        )
        db.session.add(notification)
        db.session.commit()

        if prefs is not None:
            merchant = db.session.get(Merchant, merchant_id)
            if merchant:
                self._deliver(merchant, prefs, notification, priority)

        return notification

    # ==================== Typed helpers ====================

    def notify_auto_extend(self, merchant_id: int, offer_id: str, offer_title: str,
                           extension_days: int, units_sold: int, target_units: int, now=None):
        return self.notify(
            merchant_id, NotificationType.AUTO_EXTEND,
            f'Your offer "{offer_title}" was automatically extended by {extension_days} days '
            f'because only {units_sold} of {target_units} units were sold.',
            NotificationPriority.NORMAL, offer_id, _offer_url(offer_id), now
        )

    def notify_shortfall(self, merchant_id: int, offer_id: str, offer_title: str,
                         units_sold: int, target_units: int, now=None):
        return self.notify(
            merchant_id, NotificationType.SHORTFALL_WARNING,
            f'Your offer "{offer_title}" is expiring soon. Only {units_sold} of {target_units} '
            f'units sold. Consider extending the offer.',
            NotificationPriority.NORMAL, offer_id, _offer_url(offer_id), now
        )

    def notify_offer_expired(self, merchant_id: int, offer_id: str, offer_title: str, now=None):
        return self.notify(
            merchant_id, NotificationType.OFFER_EXPIRED,
            f'Your offer "{offer_title}" has ended and moved to Expired.',
            NotificationPriority.LOW, offer_id, '/offers?view=expired', now
        )

    def notify_offer_activated(self, merchant_id: int, offer_id: str, offer_title: str, now=None):
        return self.notify(
            merchant_id, NotificationType.OFFER_ACTIVATED,
            f'Your offer "{offer_title}" is now live and accepting claims!',
            NotificationPriority.HIGH, offer_id, _offer_url(offer_id), now
        )

    def notify_budget_warning(self, merchant_id: int, offer_id: str, offer_title: str,
                              percent_remaining: int, now=None):
        return self.notify(
            merchant_id, NotificationType.BUDGET_WARNING,
            f'Your offer "{offer_title}" has only {percent_remaining}% of its click budget remaining.',
            NotificationPriority.HIGH, offer_id, _offer_url(offer_id), now
        )

    def notify_budget_depleted(self, merchant_id: int, offer_id: str, offer_title: str, now=None):
        return self.notify(
            merchant_id, NotificationType.BUDGET_DEPLETED,
            f'Your offer "{offer_title}" has reached its click budget limit and has been paused.',
            NotificationPriority.URGENT, offer_id, _offer_url(offer_id), now
        )

    def notify_max_clicks_reached(self, merchant_id: int, offer_id: str, offer_title: str, now=None):
        return self.notify(
            merchant_id, NotificationType.MAX_CLICKS_REACHED,
            f'Your offer "{offer_title}" has reached its maximum number of clicks.',
            NotificationPriority.HIGH, offer_id, _offer_url(offer_id), now
        )

    def notify_target_met(self, merchant_id: int, offer_id: str, offer_title: str,
                          target_units: int, now=None):
        return self.notify(
            merchant_id, NotificationType.TARGET_MET,
            f'Congratulations! Your offer "{offer_title}" has met its target of {target_units} units sold.',
            NotificationPriority.NORMAL, offer_id, _offer_url(offer_id), now
        )

    def notify_poor_performance(self, merchant_id: int, offer_id: str, offer_title: str, now=None):
        return self.notify(
            merchant_id, NotificationType.POOR_PERFORMANCE,
            f'Your offer "{offer_title}" has low engagement. Consider adjusting the discount or targeting.',
            NotificationPriority.LOW, offer_id, _offer_url(offer_id), now
        )

    def notify_system_alert(self, merchant_id: int, message: str, priority='normal', now=None):
        return self.notify(merchant_id, NotificationType.SYSTEM_ALERT, message, priority, now=now)

    # ==================== Notification center ====================

    def list_notifications(self, merchant_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = Notification.query.filter_by(merchant_id=merchant_id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, merchant_id: int) -> int:
        return Notification.query.filter(
            Notification.merchant_id == merchant_id,
            Notification.read_at.is_(None)
        ).count()

    def mark_read(self, notification_id: int, merchant_id: int) -> bool:
        notification = Notification.query.filter_by(id=notification_id, merchant_id=merchant_id).first()
        if not notification:
            return False
        if notification.read_at is None:
            notification.read_at = datetime.utcnow()
            db.session.commit()
        return True

    def mark_all_read(self, merchant_id: int) -> int:
        updated = Notification.query.filter(
            Notification.merchant_id == merchant_id,
            Notification.read_at.is_(None)
        ).update({Notification.read_at: datetime.utcnow()}, synchronize_session=False)
        db.session.commit()
        return updated

    # ==================== Preferences ====================

    def get_or_create_preferences(self, merchant_id: int) -> NotificationPreferences:
        prefs = NotificationPreferences.query.filter_by(merchant_id=merchant_id).first()
        if prefs is None:
            prefs = NotificationPreferences(merchant_id=merchant_id)
            db.session.add(prefs)
            db.session.commit()
        return prefs

    def update_preferences(self, merchant_id: int, data: Dict[str, Any]) -> NotificationPreferences:
        """
        Raises:
            ValidationError: Malformed HH:MM or unknown timezone
        """
        prefs = self.get_or_create_preferences(merchant_id)

        for field in ('quiet_hours_start', 'quiet_hours_end'):
            if field in data and data[field] is not None:
                _validate_hhmm(data[field], field)

        if 'timezone' in data:
            data = dict(data, timezone=data['timezone'] or 'UTC')
            try:
                ZoneInfo(data['timezone'])
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError(f"Unknown timezone: {data['timezone']}", field='timezone')

        for field in NotificationPreferences.EDITABLE_FIELDS:
            if field in data:
                setattr(prefs, field, data[field])

        db.session.commit()
        return prefs


def _validate_hhmm(value: str, field: str) -> None:
    try:
        datetime.strptime(value, '%H:%M')
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be HH:MM", field=field)
    if len(value) != 5:
        raise ValidationError(f"{field} must be HH:MM", field=field)


notification_service = NotificationService()
