"""
Twilio SMS delivery.

Talks to the Twilio REST API directly with `requests`. Used for customer
campaign texts and for high/urgent merchant notifications.

Configuration (app config / environment):
- TWILIO_ACCOUNT_SID
- TWILIO_AUTH_TOKEN
- TWILIO_PHONE_NUMBER
"""
import re
import logging
import requests
from typing import Dict, Any, List, Optional
from flask import current_app

from ..extensions import db
from ..models import Merchant
from ..utils.exceptions import ConfigurationError, MerchantNotFoundError, ValidationError
from .sms_usage_service import ensure_can_send, record_texts_sent

logger = logging.getLogger(__name__)


def normalize_phone(phone: str) -> Optional[str]:
    """E.164 for US numbers; numbers already starting with + are kept."""
    if not phone:
        return None
    phone = phone.strip()
    if phone.startswith('+'):
        return '+' + re.sub(r'\D', '', phone)
    digits = re.sub(r'\D', '', phone)
    if len(digits) == 10:
        return f'+1{digits}'
    if len(digits) == 11 and digits.startswith('1'):
        return f'+{digits}'
    return None


class TwilioSmsService:
    """
    Minimal Twilio Messages client.

    Usage:
        service = TwilioSmsService()
        if service.is_configured():
            service.send_sms('+15555550100', 'Hello')
    """

    BASE_URL = "https://api.twilio.com/2010-04-01"

    def __init__(self, account_sid: str = None, auth_token: str = None, from_number: str = None):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number

    @property
    def account_sid(self) -> Optional[str]:
        return self._account_sid or current_app.config.get('TWILIO_ACCOUNT_SID')

    @property
    def auth_token(self) -> Optional[str]:
        return self._auth_token or current_app.config.get('TWILIO_AUTH_TOKEN')

    @property
    def from_number(self) -> Optional[str]:
        return self._from_number or current_app.config.get('TWILIO_PHONE_NUMBER')

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send_sms(self, to: str, body: str) -> Dict[str, Any]:
        """
        Send one text.

        Returns:
            {'success': True, 'sid': ...} or {'success': False, 'error': ...}
        """
        if not self.is_configured():
            logger.info(f"[SMS] Twilio not configured, would send to {to}: {body}")
            return {'success': False, 'error': 'Twilio credentials not configured'}

        phone = normalize_phone(to)
        if not phone:
            return {'success': False, 'error': f'Invalid phone number: {to}'}

        try:
            response = requests.post(
                f'{self.BASE_URL}/Accounts/{self.account_sid}/Messages.json',
                auth=(self.account_sid, self.auth_token),
                data={'To': phone, 'From': self.from_number, 'Body': body},
                timeout=10
            )

            if response.status_code in (200, 201):
                sid = response.json().get('sid')
                logger.info(f"[SMS] Sent to {phone}: {sid}")
                return {'success': True, 'sid': sid}

            logger.error(f"[SMS] Twilio error {response.status_code}: {response.text}")
            return {'success': False, 'error': f'API error: {response.status_code}'}

        except requests.exceptions.RequestException as e:
            logger.error(f"[SMS] Send to {phone} failed: {e}")
            return {'success': False, 'error': str(e)}

    def config_status(self) -> Dict[str, Any]:
        return {
            'configured': self.is_configured(),
            'has_account_sid': bool(self.account_sid),
            'has_auth_token': bool(self.auth_token),
            'has_phone_number': bool(self.from_number),
        }


def campaign_message(business_name: str, message: str) -> str:
    return f"{business_name}: {message.strip()} Reply STOP to opt out."


def send_campaign(merchant_id: int, message: str, phone_numbers: List[str],
                  client: TwilioSmsService = None) -> Dict[str, Any]:
    """
    Text a campaign message to customers.

    Checks the tier quota for the whole batch up front, sends one text per
    number, and meters only the texts Twilio accepted.

    Raises:
        ValidationError: Empty message or no recipients
        SmsQuotaError: Tier does not allow this many texts
        ConfigurationError: Twilio is not configured
    """
    if not message or not message.strip():
        raise ValidationError("Message text is required", field='message')

    recipients = [p for p in dict.fromkeys(phone_numbers or []) if p]
    if not recipients:
        raise ValidationError("At least one phone number is required", field='phone_numbers')

    merchant = db.session.get(Merchant, merchant_id)
    if not merchant:
        raise MerchantNotFoundError(merchant_id)

    ensure_can_send(merchant_id, len(recipients))

    client = client or TwilioSmsService()
    if not client.is_configured():
        raise ConfigurationError("SMS service not configured. Set the Twilio credentials.")

    body = campaign_message(merchant.business_name, message)
    results = {'sent': 0, 'failed': 0, 'errors': []}

    for phone in recipients:
        result = client.send_sms(phone, body)
        if result.get('success'):
            results['sent'] += 1
        else:
            results['failed'] += 1
            results['errors'].append({'phone': phone, 'error': result.get('error', 'Unknown error')})

    if results['sent']:
        usage = record_texts_sent(merchant_id, results['sent'])
        results['usage'] = usage.to_dict()

    logger.info(
        f"[SMS] Campaign for merchant {merchant_id}: {results['sent']} sent, {results['failed']} failed"
    )
    return results
