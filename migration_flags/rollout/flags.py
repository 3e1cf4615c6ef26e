"""
Closed flag set for the tracking migration.

Defines the fixed set of flag names the controller understands and ``FlagSet``, the
immutable snapshot mapping every one of those names to exactly one boolean. A FlagSet
is never partially updated: ``replace`` returns a new snapshot, so the controller can
publish flag changes with a single reference assignment.
"""

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Union

from migration_flags.exceptions import UnknownFlagError


class FlagName(str, Enum):
    """
    Closed set of migration flags.

    Values double as the public flag identifiers used in override keys, audit payloads
    and the HTTP admin surface.
    """
    # Core migration flags
    GTM_ENABLED = "gtm_enabled"
    PARALLEL_TRACKING = "parallel_tracking"

    # Component-specific migration flags
    CHECKOUT_TRACKING = "checkout_tracking"
    PAYMENT_TRACKING = "payment_tracking"
    THANKYOU_TRACKING = "thankyou_tracking"

    # Advanced features
    ENHANCED_CONVERSIONS_ENABLED = "enhanced_conversions_enabled"
    SERVER_SIDE_BACKUP_ENABLED = "server_side_backup_enabled"

    # Migration monitoring
    MIGRATION_MONITORING_ENABLED = "migration_monitoring_enabled"
    CONVERSION_VALIDATION_ENABLED = "conversion_validation_enabled"

    # Rollback controls
    EMERGENCY_ROLLBACK_ENABLED = "emergency_rollback_enabled"
    LEGACY_TRACKING_FALLBACK = "legacy_tracking_fallback"


FlagKey = Union[FlagName, str]

# Flags that must all be on for the migration to count as complete
COMPONENT_FLAGS = (
    FlagName.CHECKOUT_TRACKING,
    FlagName.PAYMENT_TRACKING,
    FlagName.THANKYOU_TRACKING,
)

DEFAULT_FLAG_VALUES: Mapping[FlagName, bool] = MappingProxyType({
    FlagName.GTM_ENABLED: False,
    FlagName.PARALLEL_TRACKING: True,
    FlagName.CHECKOUT_TRACKING: False,
    FlagName.PAYMENT_TRACKING: False,
    FlagName.THANKYOU_TRACKING: False,
    FlagName.ENHANCED_CONVERSIONS_ENABLED: False,
    FlagName.SERVER_SIDE_BACKUP_ENABLED: False,
    FlagName.MIGRATION_MONITORING_ENABLED: True,
    FlagName.CONVERSION_VALIDATION_ENABLED: True,
    FlagName.EMERGENCY_ROLLBACK_ENABLED: False,
    FlagName.LEGACY_TRACKING_FALLBACK: True,
})


def coerce_flag_name(name: Any) -> FlagName:
    """
    Normalize a flag identifier to ``FlagName``.

    Args:
        name: ``FlagName`` member or its string value

    Returns:
        Matching FlagName member

    Raises:
        UnknownFlagError: If name is not part of the closed flag set
    """
    if isinstance(name, FlagName):
        return name
    try:
        return FlagName(name)
    except ValueError:
        raise UnknownFlagError(name) from None


class FlagSet(Mapping[FlagName, bool]):
    """
    Immutable mapping from every ``FlagName`` to a boolean.

    Lookups accept either ``FlagName`` members or their string values.
    """

    __slots__ = ('_values',)

    def __init__(self, values: Mapping[FlagKey, bool]):
        normalized: Dict[FlagName, bool] = {}
        for key, value in values.items():
            normalized[coerce_flag_name(key)] = bool(value)

        missing = [flag.value for flag in FlagName if flag not in normalized]
        if missing:
            raise ValueError(f"FlagSet is missing values for: {', '.join(missing)}")

        self._values = MappingProxyType(normalized)

    @classmethod
    def defaults(cls) -> 'FlagSet':
        """Create a FlagSet holding the compiled-in default values."""
        return cls(DEFAULT_FLAG_VALUES)

    def __getitem__(self, key: FlagKey) -> bool:
        return self._values[coerce_flag_name(key)]

    def __iter__(self) -> Iterator[FlagName]:
        return iter(FlagName)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        try:
            coerce_flag_name(key)
        except UnknownFlagError:
            return False
        return True

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FlagSet):
            return dict(self._values) == dict(other._values)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._values.items()))

    def __repr__(self) -> str:
        enabled = [flag.value for flag in FlagName if self._values[flag]]
        return f"FlagSet(enabled={enabled})"

    def replace(self, name: FlagKey, value: bool) -> 'FlagSet':
        """
        Return a new FlagSet with a single flag changed.

        Raises:
            UnknownFlagError: If name is not part of the closed flag set
        """
        flag = coerce_flag_name(name)
        values = dict(self._values)
        values[flag] = bool(value)
        return FlagSet(values)

    def to_dict(self) -> Dict[str, bool]:
        """Convert to a plain JSON-serializable dictionary keyed by flag value."""
        return {flag.value: self._values[flag] for flag in FlagName}


__all__ = [
    'FlagName',
    'FlagKey',
    'FlagSet',
    'COMPONENT_FLAGS',
    'DEFAULT_FLAG_VALUES',
    'coerce_flag_name',
]
