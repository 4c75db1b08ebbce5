"""
SMS API.

Quota checks, monthly usage and customer campaign sends.
"""
from flask import Blueprint, request, jsonify, g

from ..services.sms_service import TwilioSmsService, send_campaign
from ..services.sms_usage_service import check_sms_budget, get_monthly_usage, month_key
from ..utils.errors import exception_response, bad_request, ErrorCode
from ..utils.exceptions import DealByrdError
from ..middleware.auth import require_merchant_auth

sms_bp = Blueprint('sms', __name__)


@sms_bp.route('/sms-budget', methods=['GET'])
@require_merchant_auth
def get_sms_budget():
    """
    Can the merchant send `count` more texts this month?

    Query params:
        count: texts about to be sent (default 1)
    """
    count = request.args.get('count', 1, type=int)
    if count < 1:
        return bad_request('count must be at least 1', ErrorCode.INVALID_FIELD)

    try:
        return jsonify(check_sms_budget(g.merchant_id, count))
    except DealByrdError as e:
        return exception_response(e)


@sms_bp.route('/sms/usage', methods=['GET'])
@require_merchant_auth
def get_usage():
    """
    Monthly usage row with its pricing breakdown.

    Query params:
        month: YYYY-MM (default current month)
    """
    month = request.args.get('month') or month_key()
    usage = get_monthly_usage(g.merchant_id, month)
    if not usage:
        return jsonify({
            'month': month,
            'texts_sent': 0,
            'total_fee_cents': 0,
            'pricing_breakdown': []
        })
    return jsonify(usage.to_dict())


@sms_bp.route('/sms/send-campaign', methods=['POST'])
@require_merchant_auth
def send_campaign_route():
    """
    Text a campaign message to customers.

    Request body:
    {
        "message": "Half off tacos until 9pm!",
        "phone_numbers": ["+15555550100", "5555550101"]
    }
    """
    data = request.get_json() or {}

    try:
        result = send_campaign(g.merchant_id, data.get('message'), data.get('phone_numbers') or [])
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({
        'success': result['sent'] > 0,
        'message': f"Sent {result['sent']} texts ({result['failed']} failed)",
        'result': result
    })


@sms_bp.route('/sms/config-status', methods=['GET'])
@require_merchant_auth
def config_status():
    """Whether Twilio credentials are present. Never returns the credentials."""
    return jsonify(TwilioSmsService().config_status())
