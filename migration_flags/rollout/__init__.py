"""
Rollout/phase controller core: flag precedence resolution, phase derivation,
consistent-hash bucketing, the audit trail and the controller orchestrating them.
"""

from migration_flags.rollout.flags import (
    COMPONENT_FLAGS,
    DEFAULT_FLAG_VALUES,
    FlagName,
    FlagSet,
    coerce_flag_name,
)
from migration_flags.rollout.phase import MigrationPhase, derive_phase
from migration_flags.rollout.bucketing import ConsistentBucketer, bucket
from migration_flags.rollout.audit import AUDIT_CAPACITY, AuditEvent, AuditLog
from migration_flags.rollout.resolver import FlagResolver, override_key, parse_flag_value
from migration_flags.rollout.controller import (
    COMPONENT_FLAG_MAP,
    MigrationStatus,
    RolloutController,
)

__all__ = [
    'COMPONENT_FLAGS',
    'DEFAULT_FLAG_VALUES',
    'FlagName',
    'FlagSet',
    'coerce_flag_name',
    'MigrationPhase',
    'derive_phase',
    'ConsistentBucketer',
    'bucket',
    'AUDIT_CAPACITY',
    'AuditEvent',
    'AuditLog',
    'FlagResolver',
    'override_key',
    'parse_flag_value',
    'COMPONENT_FLAG_MAP',
    'MigrationStatus',
    'RolloutController',
]
