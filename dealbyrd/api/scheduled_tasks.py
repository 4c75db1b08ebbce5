"""
Scheduled Tasks API endpoints.

Provides endpoints to:
- Run the lifecycle sweeps manually
- View each sweep's checkpoint and the scheduler's next run times
"""
from flask import Blueprint, jsonify

from ..middleware.auth import require_merchant_auth
from ..services.lifecycle_service import lifecycle_service
from ..utils.scheduler import get_next_run_times

scheduled_tasks_bp = Blueprint('scheduled_tasks', __name__)


@scheduled_tasks_bp.route('/activate/run', methods=['POST'])
@require_merchant_auth
def run_activate():
    """
    Manually trigger the auto-activate sweep.

    Normally runs every 15 minutes. Safe to run again at any time; an
    offer is only ever activated once.
    """
    result = lifecycle_service.run_activate_sweep()

    return jsonify({
        'success': not result['errors'],
        'message': f"Activated {result['activated']} of {result['processed']} offers",
        'result': result
    })


@scheduled_tasks_bp.route('/expire/run', methods=['POST'])
@require_merchant_auth
def run_expire():
    """Manually trigger the auto-expire sweep."""
    result = lifecycle_service.run_expire_sweep()

    return jsonify({
        'success': not result['errors'],
        'message': f"Expired {result['expired']} of {result['processed']} offers",
        'result': result
    })


@scheduled_tasks_bp.route('/extend/run', methods=['POST'])
@require_merchant_auth
def run_extend():
    """Manually trigger the auto-extend sweep."""
    result = lifecycle_service.run_extend_sweep()

    return jsonify({
        'success': not result['errors'],
        'message': (f"Extended {result['extended']} offers, "
                    f"sent {result['shortfall_warnings']} shortfall warnings"),
        'result': result
    })


@scheduled_tasks_bp.route('/status', methods=['GET'])
@require_merchant_auth
def get_status():
    """Last successful run per sweep plus next scheduled runs."""
    return jsonify({
        'jobs': lifecycle_service.get_status(),
        'schedule': get_next_run_times()
    })
