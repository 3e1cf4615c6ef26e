"""Monitoring package: structured logging, Prometheus metrics and the migration health check."""

from migration_flags.monitoring.logging import get_logger, setup_structured_logging
from migration_flags.monitoring.metrics import MigrationMetrics
from migration_flags.monitoring.health import (
    HealthStatus,
    check_emergency_rollback_conditions,
    check_error_rates,
    check_feature_flags,
    check_migration_health,
)

__all__ = [
    'get_logger',
    'setup_structured_logging',
    'MigrationMetrics',
    'HealthStatus',
    'check_feature_flags',
    'check_error_rates',
    'check_emergency_rollback_conditions',
    'check_migration_health',
]
