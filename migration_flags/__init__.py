"""
Tracking Migration Rollout Controller
=====================================

Runtime feature-flag controller governing the phased migration from the legacy
client-side tracking mechanism to the new one, without a central flag service.

Package Structure:
- rollout: flag resolution, phase derivation, session bucketing, audit trail and the
  ``RolloutController`` orchestrating them
- storage: override stores, session stores, audit sinks and alert sinks
- config: ``RolloutSettings`` loaded from the environment
- monitoring: structured logging, Prometheus metrics and the migration health check
- blueprints / app: Flask admin surface and application factory
"""

__version__ = "1.0.0"
__title__ = "migration-flags"
__description__ = "Rollout and phase controller for the tracking migration"

from migration_flags.exceptions import (
    ConfigurationError,
    ControllerClosedError,
    MigrationFlagError,
    SourceUnavailable,
    UnknownFlagError,
)
from migration_flags.rollout import (
    AuditEvent,
    ConsistentBucketer,
    FlagName,
    FlagSet,
    MigrationPhase,
    MigrationStatus,
    RolloutController,
    derive_phase,
)
from migration_flags.config.settings import RolloutSettings

__all__ = [
    '__version__',
    'ConfigurationError',
    'ControllerClosedError',
    'MigrationFlagError',
    'SourceUnavailable',
    'UnknownFlagError',
    'AuditEvent',
    'ConsistentBucketer',
    'FlagName',
    'FlagSet',
    'MigrationPhase',
    'MigrationStatus',
    'RolloutController',
    'derive_phase',
    'RolloutSettings',
]
