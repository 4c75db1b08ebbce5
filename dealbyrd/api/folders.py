"""
Campaign Folders API.
"""
from flask import Blueprint, request, jsonify, g

from ..services.folder_service import folder_service
from ..services.tier_limits import get_tier_capabilities
from ..utils.errors import exception_response, forbidden, ErrorCode
from ..utils.exceptions import DealByrdError
from ..middleware.auth import require_merchant_auth

folders_bp = Blueprint('campaign_folders', __name__)


@folders_bp.route('', methods=['GET'])
@require_merchant_auth
def list_folders():
    status = request.args.get('status')
    folders = folder_service.list_folders(g.merchant_id, status=status)
    return jsonify({'folders': [f.to_dict(include_counts=True) for f in folders]})


@folders_bp.route('', methods=['POST'])
@require_merchant_auth
def create_folder():
    """
    Create a folder.

    Request body:
    {
        "name": "Spring specials",
        "description": "optional"
    }
    """
    if not get_tier_capabilities(g.merchant.tier).allow_folders:
        return forbidden('Campaign folders require ASCEND or higher', ErrorCode.TIER_LIMIT_EXCEEDED)

    data = request.get_json() or {}
    try:
        folder = folder_service.create_folder(g.merchant_id, data.get('name'), data.get('description'))
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'folder': folder.to_dict()}), 201


@folders_bp.route('/<folder_id>', methods=['GET'])
@require_merchant_auth
def get_folder(folder_id):
    try:
        folder = folder_service.get_folder(g.merchant_id, folder_id)
    except DealByrdError as e:
        return exception_response(e)

    result = folder.to_dict(include_counts=True)
    result['offers'] = [o.to_dict() for o in folder.offers.filter_by(is_deleted=False)]
    return jsonify({'folder': result})


@folders_bp.route('/<folder_id>', methods=['DELETE'])
@require_merchant_auth
def delete_folder(folder_id):
    try:
        folder_service.delete_folder(g.merchant_id, folder_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'message': 'Folder deleted'})


@folders_bp.route('/<folder_id>/promote', methods=['POST'])
@require_merchant_auth
def promote_folder(folder_id):
    """Promote a folder to a campaign. Its offers become read-only."""
    try:
        folder = folder_service.promote_to_campaign(g.merchant_id, folder_id)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'folder': folder.to_dict()})
