"""
Merchant Bank API.

Deposits, budget allocation and transfers between the bank, text and RIPS
ledgers. All transfers are atomic; a short source leaves every ledger as it was.
"""
from flask import Blueprint, request, jsonify, g

from ..services.bank_service import bank_service
from ..services.tier_limits import get_tier_capabilities, cost_per_text_cents
from ..utils.errors import exception_response, bad_request, ErrorCode
from ..utils.exceptions import DealByrdError
from ..middleware.auth import require_merchant_auth

bank_bp = Blueprint('bank', __name__)


@bank_bp.route('/balance', methods=['GET'])
@require_merchant_auth
def get_balance():
    """Current bank (cents), text budget and RIPS budget (dollars)."""
    try:
        balances = bank_service.get_balances(g.merchant_id)
    except DealByrdError as e:
        return exception_response(e)

    merchant = g.merchant
    balances['tier'] = merchant.tier.value
    balances['cost_per_text_cents'] = float(cost_per_text_cents(merchant.tier, merchant.lifetime_texts_sent or 0))
    return jsonify(balances)


@bank_bp.route('/add-funds', methods=['POST'])
@require_merchant_auth
def add_funds():
    """
    Deposit into the merchant bank.

    Request body:
    {
        "amount_dollars": 25.00
    }
    """
    data = request.get_json() or {}
    if data.get('amount_dollars') is None:
        return bad_request('amount_dollars is required', ErrorCode.MISSING_FIELD)

    try:
        balances = bank_service.add_funds(g.merchant_id, data['amount_dollars'])
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, **balances})


@bank_bp.route('/allocate', methods=['POST'])
@require_merchant_auth
def allocate():
    """
    Move bank funds into the text and RIPS budgets.

    Request body:
    {
        "text_budget": 10.00,
        "rips_budget": 5.00
    }
    """
    data = request.get_json() or {}

    try:
        balances = bank_service.allocate(g.merchant_id, data.get('text_budget', 0), data.get('rips_budget', 0))
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, **balances})


@bank_bp.route('/transfer-to-text', methods=['POST'])
@require_merchant_auth
def transfer_to_text():
    """
    Buy (positive) or sell back (negative) texts at the tier's per-text price.

    Request body:
    {
        "text_count": 100
    }
    """
    data = request.get_json() or {}

    try:
        balances = bank_service.transfer_to_text(g.merchant_id, data.get('text_count'))
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, **balances})


@bank_bp.route('/transfer-to-rips', methods=['POST'])
@require_merchant_auth
def transfer_to_rips():
    """
    Positive amount moves bank -> RIPS, negative moves RIPS -> bank.

    Request body:
    {
        "amount": 5.00
    }
    """
    data = request.get_json() or {}
    if data.get('amount') is None:
        return bad_request('amount is required', ErrorCode.MISSING_FIELD)

    try:
        balances = bank_service.transfer_to_rips(g.merchant_id, data['amount'])
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, **balances})


@bank_bp.route('/tier', methods=['GET'])
@require_merchant_auth
def get_tier():
    """Capabilities of the merchant's membership tier."""
    return jsonify(get_tier_capabilities(g.merchant.tier).to_dict())
