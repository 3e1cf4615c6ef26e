"""
Migration health check.

Summarizes the controller state into ``healthy``, ``warning`` or ``critical`` for
load balancers and operators. Individual checks each return a
``{status, details, issues}`` dictionary; the overall status is the worst of them.

Checks:
- feature_flags: an engaged emergency rollback is critical; an out-of-range configured
  percentage or a path decision that contradicts the flags is a warning
- error_rates: share of audit events from the last hour whose name mentions an error,
  a failure or a rollback; above 5% is a warning, above 10% is critical

Callers may pass additional checks (for example conversion accuracy reported by an
external monitor). With ``auto_rollback`` enabled, two or more critical checks trigger
an emergency rollback.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

import structlog

from migration_flags.rollout.flags import FlagName
from migration_flags.rollout.phase import MigrationPhase

if TYPE_CHECKING:
    from migration_flags.rollout.controller import RolloutController

logger = structlog.get_logger(__name__)

ERROR_RATE_WINDOW = timedelta(hours=1)
ERROR_RATE_WARNING_THRESHOLD = 5.0
ERROR_RATE_CRITICAL_THRESHOLD = 10.0
ERROR_EVENT_MARKERS = ('error', 'failed', 'rollback')

# Critical checks needed before the monitor forces a rollback
CRITICAL_CHECKS_FOR_ROLLBACK = 2

HealthCheck = Callable[['RolloutController'], Dict[str, Any]]


class HealthStatus:
    """Health status constants."""
    HEALTHY = 'healthy'
    WARNING = 'warning'
    CRITICAL = 'critical'


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.WARNING: 1, HealthStatus.CRITICAL: 2}


def _new_check() -> Dict[str, Any]:
    return {'status': HealthStatus.HEALTHY, 'details': {}, 'issues': []}


def check_feature_flags(controller: 'RolloutController') -> Dict[str, Any]:
    """Flag consistency, rollout percentage sanity and rollback state."""
    check = _new_check()
    status = controller.status()
    configured = controller.configured_rollout_percentage

    check['details'].update({
        'phase': status.phase.value,
        'rollout_percentage': status.rollout_percentage,
        'configured_rollout_percentage': configured,
        'should_use_new_path': status.should_use_new_path
    })

    if configured < 0 or configured > 100:
        check['status'] = HealthStatus.WARNING
        check['issues'].append(f"Invalid rollout percentage: {configured}%")

    if status.should_use_new_path and not status.flags[FlagName.GTM_ENABLED]:
        check['status'] = HealthStatus.WARNING
        check['issues'].append("New tracking path selected while gtm_enabled is off")

    if status.phase is MigrationPhase.ROLLBACK:
        check['status'] = HealthStatus.CRITICAL
        check['issues'].append("Emergency rollback is active")

    return check


def check_error_rates(
    controller: 'RolloutController',
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Error-like events as a share of the last hour's audit trail.

    Args:
        controller: Rollout controller whose audit trail is inspected
        now: Reference time, defaults to the current UTC time

    Returns:
        Check dictionary with total_recent_events, error_events and error_rate details
    """
    check = _new_check()
    cutoff = (now or datetime.now(timezone.utc)) - ERROR_RATE_WINDOW

    recent = [event for event in controller.events() if event.timestamp > cutoff]
    errors = [
        event for event in recent
        if any(marker in event.event_name for marker in ERROR_EVENT_MARKERS)
    ]
    error_rate = round(len(errors) / len(recent) * 100, 2) if recent else 0.0

    check['details'].update({
        'total_recent_events': len(recent),
        'error_events': len(errors),
        'error_rate': error_rate
    })

    if error_rate > ERROR_RATE_CRITICAL_THRESHOLD:
        check['status'] = HealthStatus.CRITICAL
        check['issues'].append(f"High error rate: {error_rate:.2f}%")
    elif error_rate > ERROR_RATE_WARNING_THRESHOLD:
        check['status'] = HealthStatus.WARNING
        check['issues'].append(f"Elevated error rate: {error_rate:.2f}%")

    return check


def check_emergency_rollback_conditions(
    controller: 'RolloutController',
    checks: Mapping[str, Dict[str, Any]]
) -> bool:
    """
    Trigger an emergency rollback when several checks are critical at once.

    Does nothing while a rollback is already active, since the active rollback is
    itself reported as critical.

    Returns:
        True if a rollback was triggered
    """
    if controller.is_rollback_active():
        return False

    critical = [
        (name, check) for name, check in checks.items()
        if check['status'] == HealthStatus.CRITICAL
    ]
    if len(critical) < CRITICAL_CHECKS_FOR_ROLLBACK:
        return False

    messages = '; '.join(issue for _, check in critical for issue in check['issues'])
    controller.emergency_rollback(f"Multiple critical alerts: {messages}")
    logger.critical(
        "Automatic emergency rollback triggered by health checks",
        checks=[name for name, _ in critical]
    )
    return True


def check_migration_health(
    controller: 'RolloutController',
    extra_checks: Optional[Mapping[str, HealthCheck]] = None,
    auto_rollback: bool = False
) -> Dict[str, Any]:
    """
    Evaluate migration health.

    Args:
        controller: Rollout controller to inspect
        extra_checks: Additional named checks returning ``{status, details, issues}``
        auto_rollback: Trigger an emergency rollback on multiple critical checks

    Returns:
        Dictionary with ``status``, ``details``, ``issues``, ``checks``,
        ``rollback_triggered`` and ``timestamp``
    """
    checks: Dict[str, Dict[str, Any]] = {
        'feature_flags': check_feature_flags(controller),
        'error_rates': check_error_rates(controller),
    }
    for name, check in (extra_checks or {}).items():
        try:
            checks[name] = check(controller)
        except Exception as e:
            logger.warning("Health check failed", check=name, error=str(e))
            checks[name] = {
                'status': HealthStatus.WARNING,
                'details': {},
                'issues': [f"{name} check failed: {e}"]
            }

    rollback_triggered = auto_rollback and check_emergency_rollback_conditions(controller, checks)
    if rollback_triggered:
        checks['feature_flags'] = check_feature_flags(controller)

    health = max((check['status'] for check in checks.values()), key=_SEVERITY.__getitem__)
    details: Dict[str, Any] = {}
    issues: List[str] = []
    for check in checks.values():
        details.update(check['details'])
        issues.extend(check['issues'])

    if issues:
        logger.warning("Migration health degraded", status=health, issues=issues)

    return {
        'status': health,
        'details': details,
        'issues': issues,
        'checks': checks,
        'rollback_triggered': rollback_triggered,
        'timestamp': datetime.now(timezone.utc).isoformat()
    }


__all__ = [
    'HealthStatus',
    'check_feature_flags',
    'check_error_rates',
    'check_emergency_rollback_conditions',
    'check_migration_health',
]
