"""
Migration Admin Blueprint

Operator-facing HTTP surface over the rollout controller: inspect the current phase
and routing decision, change flags at runtime, trigger an emergency rollback, review,
export or clear the audit trail, and scrape Prometheus metrics.

Endpoints (mounted under ``/migration``):
- GET    /status          Controller status for the caller's session
- GET    /health          Migration health (HTTP 503 when critical)
- POST   /flags/<name>    Update a flag, body ``{"value": true|false}``
- POST   /rollback        Emergency rollback, body ``{"reason": "..."}``
- GET    /events          Audit trail, oldest first
- DELETE /events          Clear the audit trail
- GET    /events/export   Audit trail as a downloadable JSON document
- GET    /metrics         Prometheus metrics
"""

import json
from datetime import datetime, timezone
from functools import wraps
from typing import Callable, Optional

import structlog
from flask import Blueprint, Flask, Response, current_app, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST

from migration_flags.exceptions import ControllerClosedError, UnknownFlagError
from migration_flags.monitoring.health import HealthStatus, check_migration_health
from migration_flags.rollout.controller import RolloutController

logger = structlog.get_logger(__name__)

CONTROLLER_EXTENSION_KEY = 'rollout_controller'
METRICS_EXTENSION_KEY = 'migration_metrics'

migration_bp = Blueprint('migration', __name__, url_prefix='/migration')


def get_rollout_controller(app: Optional[Flask] = None) -> RolloutController:
    """
    Get the rollout controller registered on the application.

    Raises:
        RuntimeError: If no controller is registered
    """
    app = app or current_app
    controller = app.extensions.get(CONTROLLER_EXTENSION_KEY)
    if controller is None:
        raise RuntimeError("Rollout controller is not initialized for this application")
    return controller


def requires_new_tracking(component: Optional[str] = None):
    """
    Decorator restricting an endpoint to sessions routed to the new tracking path.

    Args:
        component: Optional component name (checkout, payment, thankyou) that must
            also be migrated for the caller's session

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            controller = get_rollout_controller()

            if controller.is_rollback_active():
                return jsonify({
                    'error': 'System is in rollback mode',
                    'status': 'rollback_active'
                }), 503

            allowed = (
                controller.should_use_component(component)
                if component is not None
                else controller.should_use_new_path()
            )
            if not allowed:
                return jsonify({
                    'error': 'New tracking path is not enabled for this session',
                    'status': 'feature_disabled',
                    'component': component
                }), 503

            return f(*args, **kwargs)

        return decorated_function
    return decorator


@migration_bp.route('/status', methods=['GET'])
def migration_status():
    """Current controller status for the caller's session."""
    controller = get_rollout_controller()
    return jsonify({
        'status': 'success',
        'data': controller.status().to_dict()
    })


@migration_bp.route('/health', methods=['GET'])
def migration_health():
    """
    Migration health for load balancers and operators.

    Returns:
        HTTP 200 when healthy or degraded, HTTP 503 when critical (active rollback or
        a high error rate in the audit trail)
    """
    health = check_migration_health(get_rollout_controller())
    status_code = 503 if health['status'] == HealthStatus.CRITICAL else 200
    return jsonify(health), status_code


@migration_bp.route('/flags/<flag_name>', methods=['POST'])
def update_flag(flag_name: str):
    """
    Update a migration flag at runtime.

    Returns:
        JSON response with the new status; 400 on a non-boolean value, 404 on an
        unknown flag, 409 when the controller is closed
    """
    payload = request.get_json(silent=True) or {}
    value = payload.get('value')
    if not isinstance(value, bool):
        return jsonify({
            'error': 'INVALID_FLAG_VALUE',
            'message': 'Request body must contain a boolean "value"'
        }), 400

    controller = get_rollout_controller()
    try:
        controller.update_flag(flag_name, value)
    except UnknownFlagError as e:
        logger.warning("Rejected update of unknown flag", flag=flag_name)
        return jsonify(e.to_dict()), 404
    except ControllerClosedError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({
        'status': 'success',
        'data': controller.status().to_dict()
    })


@migration_bp.route('/rollback', methods=['POST'])
def emergency_rollback():
    """Trigger an emergency rollback to the legacy tracking path."""
    payload = request.get_json(silent=True) or {}
    reason = payload.get('reason')
    if not isinstance(reason, str) or not reason.strip():
        reason = 'Manual rollback requested'

    controller = get_rollout_controller()
    try:
        controller.emergency_rollback(reason)
    except ControllerClosedError as e:
        return jsonify(e.to_dict()), 409

    return jsonify({
        'status': 'success',
        'data': controller.status().to_dict()
    })


@migration_bp.route('/events', methods=['GET'])
def list_events():
    """Audit trail, oldest first."""
    events = [event.to_dict() for event in get_rollout_controller().events()]
    return jsonify({
        'status': 'success',
        'count': len(events),
        'data': events
    })


@migration_bp.route('/events', methods=['DELETE'])
def clear_events():
    """Clear the audit trail."""
    cleared = get_rollout_controller().clear_events()
    if not cleared:
        return jsonify({
            'error': 'AUDIT_UNAVAILABLE',
            'message': 'Audit trail could not be cleared'
        }), 503
    return jsonify({'status': 'success'})


@migration_bp.route('/events/export', methods=['GET'])
def export_events():
    """Audit trail and current status as a downloadable JSON document."""
    controller = get_rollout_controller()
    exported_at = datetime.now(timezone.utc)
    document = {
        'exported_at': exported_at.isoformat(),
        'status': controller.status().to_dict(),
        'events': [event.to_dict() for event in controller.events()]
    }
    filename = f"migration-events-{exported_at.strftime('%Y%m%dT%H%M%SZ')}.json"
    response = Response(json.dumps(document, indent=2), mimetype='application/json')
    response.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


@migration_bp.route('/metrics', methods=['GET'])
def prometheus_metrics():
    """Prometheus metrics for the migration controller."""
    metrics = current_app.extensions.get(METRICS_EXTENSION_KEY)
    if metrics is None:
        return jsonify({
            'error': 'Prometheus metrics disabled',
            'message': 'Metrics collection disabled'
        }), 503

    response = Response(metrics.render(), mimetype=CONTENT_TYPE_LATEST)
    response.headers['Cache-Control'] = 'no-cache'
    return response


def init_migration_blueprint(app: Flask) -> None:
    """Register the migration admin Blueprint with the application."""
    app.register_blueprint(migration_bp)
    logger.info(
        "Migration admin Blueprint initialized",
        blueprint_name='migration',
        url_prefix=migration_bp.url_prefix
    )


__all__ = [
    'migration_bp',
    'get_rollout_controller',
    'requires_new_tracking',
    'init_migration_blueprint',
    'CONTROLLER_EXTENSION_KEY',
    'METRICS_EXTENSION_KEY',
]
