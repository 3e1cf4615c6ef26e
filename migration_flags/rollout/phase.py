"""
Migration phase state machine.

The phase is never stored on its own: it is always a pure function of the current
``FlagSet``, evaluated in strict priority order (first match wins):

1. ROLLBACK     - emergency rollback is engaged
2. LEGACY       - the new tracking path is disabled
3. PARALLEL     - both tracking paths run side by side
4. FULL_NEW     - every component has moved to the new path
5. PARTIAL_NEW  - some components are still on the legacy path
"""

from enum import Enum
from typing import Mapping

from migration_flags.rollout.flags import COMPONENT_FLAGS, FlagName


class MigrationPhase(Enum):
    """
    Migration phase enumeration representing the progression from the legacy tracking
    mechanism to the new one.
    """
    ROLLBACK = "rollback"
    LEGACY = "legacy"
    PARALLEL = "parallel"
    PARTIAL_NEW = "partial_new"
    FULL_NEW = "full_new"


# Phases in which no session is routed to the new tracking path
INACTIVE_PHASES = frozenset({MigrationPhase.ROLLBACK, MigrationPhase.LEGACY})


def derive_phase(flags: Mapping[FlagName, bool]) -> MigrationPhase:
    """
    Derive the migration phase from a flag snapshot.

    Args:
        flags: Complete flag snapshot (normally a ``FlagSet``)

    Returns:
        Exactly one MigrationPhase
    """
    if flags[FlagName.EMERGENCY_ROLLBACK_ENABLED]:
        return MigrationPhase.ROLLBACK

    if not flags[FlagName.GTM_ENABLED]:
        return MigrationPhase.LEGACY

    if flags[FlagName.PARALLEL_TRACKING]:
        return MigrationPhase.PARALLEL

    if all(flags[flag] for flag in COMPONENT_FLAGS):
        return MigrationPhase.FULL_NEW

    return MigrationPhase.PARTIAL_NEW


__all__ = ['MigrationPhase', 'INACTIVE_PHASES', 'derive_phase']
