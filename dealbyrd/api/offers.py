"""
Offers API.

Merchant CRUD for flash deals plus the soft-delete lifecycle
(delete -> resurrect -> reintegrate) and sales recording.
"""
from flask import Blueprint, request, jsonify, g

from ..models import OfferStatus
from ..services import offer_repository
from ..services.offer_service import offer_service
from ..utils.errors import exception_response, not_found, bad_request, ErrorCode
from ..utils.exceptions import DealByrdError
from ..middleware.auth import require_merchant_auth

offers_bp = Blueprint('offers', __name__)


@offers_bp.route('', methods=['GET'])
@require_merchant_auth
def list_offers():
    """
    List the merchant's offers.

    Query params:
        status: draft | active | paused | expired
        include_deleted: true to include soft-deleted offers
    """
    status = request.args.get('status')
    if status and status not in [s.value for s in OfferStatus]:
        return bad_request(f'Invalid status: {status}', ErrorCode.INVALID_FIELD)

    include_deleted = request.args.get('include_deleted', 'false').lower() == 'true'
    offers = offer_repository.list_offers(g.merchant_id, include_deleted=include_deleted, status=status)

    return jsonify({
        'offers': [o.to_dict() for o in offers],
        'total': len(offers)
    })


@offers_bp.route('', methods=['POST'])
@require_merchant_auth
def create_offer():
    """
    Create an offer.

    Drafts may be incomplete. An offer created as active must pass
    required-field, tier, active-count, end-date and bank checks.
    """
    data = request.get_json() or {}

    try:
        offer = offer_service.create_offer(g.merchant_id, data)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'offer': offer.to_dict()}), 201


@offers_bp.route('/<offer_id>', methods=['GET'])
@require_merchant_auth
def get_offer(offer_id):
    offer = offer_repository.get_offer(offer_id, g.merchant_id)
    if not offer:
        return not_found('Offer not found', ErrorCode.OFFER_NOT_FOUND)
    return jsonify({'offer': offer.to_dict()})


@offers_bp.route('/<offer_id>', methods=['PATCH', 'PUT'])
@require_merchant_auth
def update_offer(offer_id):
    """Partial update. Activating or editing an active offer re-runs the publish checks."""
    data = request.get_json() or {}

    try:
        offer = offer_service.update_offer(g.merchant_id, offer_id, data)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'offer': offer.to_dict()})


@offers_bp.route('/<offer_id>', methods=['DELETE'])
@require_merchant_auth
def delete_offer(offer_id):
    """Soft delete."""
    try:
        offer_service.delete_offer(g.merchant_id, offer_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'message': 'Offer deleted'})


@offers_bp.route('/<offer_id>/resurrect', methods=['POST'])
@require_merchant_auth
def resurrect_offer(offer_id):
    try:
        offer_service.resurrect_offer(g.merchant_id, offer_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({
        'success': True,
        'message': 'Offer restored as a draft. Reintegrate it before activating.'
    })


@offers_bp.route('/<offer_id>/reintegrate', methods=['POST'])
@require_merchant_auth
def reintegrate_offer(offer_id):
    try:
        offer_service.reintegrate_offer(g.merchant_id, offer_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'message': 'Offer reintegrated'})


@offers_bp.route('/<offer_id>/permanent', methods=['DELETE'])
@require_merchant_auth
def permanent_delete_offer(offer_id):
    try:
        offer_service.permanent_delete_offer(g.merchant_id, offer_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'message': 'Offer permanently deleted'})


@offers_bp.route('/<offer_id>/sales', methods=['POST'])
@require_merchant_auth
def record_sales(offer_id):
    """
    Record units sold for an offer.

    Request body:
    {
        "quantity": 2
    }
    """
    data = request.get_json() or {}
    try:
        quantity = int(data.get('quantity', 1))
    except (TypeError, ValueError):
        return bad_request('quantity must be a whole number', ErrorCode.INVALID_FIELD)

    try:
        offer = offer_service.record_sales(g.merchant_id, offer_id, quantity)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({
        'success': True,
        'units_sold': offer.units_sold,
        'target_units': offer.target_units
    })
