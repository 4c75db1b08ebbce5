"""
Notification Center API.

In-app notification feed plus per-merchant delivery preferences.
"""
from flask import Blueprint, request, jsonify, g

from ..services.notification_service import notification_service
from ..utils.errors import exception_response, not_found, ErrorCode
from ..utils.exceptions import DealByrdError
from ..middleware.auth import require_merchant_auth

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
@require_merchant_auth
def list_notifications():
    """
    Query params:
        unread: true to return only unread notifications
        limit: max rows (default 50, max 200)
    """
    unread_only = request.args.get('unread', 'false').lower() == 'true'
    limit = min(request.args.get('limit', 50, type=int), 200)

    notifications = notification_service.list_notifications(g.merchant_id, unread_only=unread_only, limit=limit)

    return jsonify({
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': notification_service.unread_count(g.merchant_id)
    })


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@require_merchant_auth
def mark_read(notification_id):
    if not notification_service.mark_read(notification_id, g.merchant_id):
        return not_found('Notification not found', ErrorCode.NOT_FOUND)
    return jsonify({'success': True})


@notifications_bp.route('/read-all', methods=['POST'])
@require_merchant_auth
def mark_all_read():
    updated = notification_service.mark_all_read(g.merchant_id)
    return jsonify({'success': True, 'marked': updated})


@notifications_bp.route('/preferences', methods=['GET'])
@require_merchant_auth
def get_preferences():
    prefs = notification_service.get_or_create_preferences(g.merchant_id)
    return jsonify({'preferences': prefs.to_dict()})


@notifications_bp.route('/preferences', methods=['PATCH', 'PUT'])
@require_merchant_auth
def update_preferences():
    """
    Update toggles, channels and quiet hours. Unknown keys are ignored.

    Request body (any subset):
    {
        "sms_enabled": true,
        "quiet_hours_enabled": true,
        "quiet_hours_start": "22:00",
        "quiet_hours_end": "08:00",
        "timezone": "America/Chicago"
    }
    """
    data = request.get_json() or {}

    try:
        prefs = notification_service.update_preferences(g.merchant_id, data)
    except DealByrdError as e:
        return exception_response(e)

    return jsonify({'success': True, 'preferences': prefs.to_dict()})
