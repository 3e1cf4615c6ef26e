"""
Layered flag resolution.

Each flag resolves once, at controller construction, from three sources in order of
precedence (highest wins):

1. a runtime override stored under ``override_<flag>`` in the override store
2. an environment default named ``<env_prefix><FLAG>`` (``MIGRATION_FLAG_GTM_ENABLED``)
3. the compiled-in default supplied by the caller

Values are parsed against fixed ``true``/``false`` tokens. Anything else, an absent
value, or an unreachable override store falls through to the next level; resolution
never raises.
"""

import os
from typing import Callable, Mapping, Optional

import structlog

from migration_flags.rollout.flags import FlagKey, FlagName, FlagSet, coerce_flag_name
from migration_flags.storage.base import OverrideStore

logger = structlog.get_logger(__name__)

OVERRIDE_KEY_PREFIX = "override_"
DEFAULT_ENV_PREFIX = "MIGRATION_FLAG_"

TRUE_TOKEN = "true"
FALSE_TOKEN = "false"


def parse_flag_value(raw: object) -> Optional[bool]:
    """
    Parse a stored flag value.

    Returns:
        True or False for the fixed tokens, None for anything else
    """
    if not isinstance(raw, str):
        return None
    token = raw.strip().lower()
    if token == TRUE_TOKEN:
        return True
    if token == FALSE_TOKEN:
        return False
    return None


def format_flag_value(value: bool) -> str:
    """Serialize a flag value in the token format ``parse_flag_value`` accepts."""
    return TRUE_TOKEN if value else FALSE_TOKEN


def override_key(flag: FlagKey) -> str:
    """Override store key for a flag."""
    return f"{OVERRIDE_KEY_PREFIX}{coerce_flag_name(flag).value}"


class FlagResolver:
    """Resolves flag values from override store, environment and compiled defaults."""

    def __init__(
        self,
        override_store: Optional[OverrideStore],
        environ: Optional[Mapping[str, str]] = None,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        on_source_error: Optional[Callable[[str, Exception], None]] = None
    ):
        """
        Args:
            override_store: Runtime override source; None disables the override level
            environ: Environment mapping, defaults to ``os.environ``
            env_prefix: Prefix of per-flag environment variables
            on_source_error: Optional callback ``(operation, exc)`` for absorbed store faults
        """
        self._override_store = override_store
        self._environ = os.environ if environ is None else environ
        self._env_prefix = env_prefix
        self._on_source_error = on_source_error

    def env_key(self, flag: FlagKey) -> str:
        """Environment variable name carrying the default for a flag."""
        return f"{self._env_prefix}{coerce_flag_name(flag).value.upper()}"

    def resolve(self, flag_name: FlagKey, default: bool) -> bool:
        """
        Resolve one flag.

        Args:
            flag_name: Flag to resolve
            default: Compiled-in default used when no other source has a valid value

        Returns:
            Resolved boolean value
        """
        flag = coerce_flag_name(flag_name)

        override = parse_flag_value(self._read_override(flag))
        if override is not None:
            return override

        env_value = parse_flag_value(self._environ.get(self.env_key(flag)))
        if env_value is not None:
            return env_value

        return bool(default)

    def resolve_all(self, defaults: Mapping[FlagName, bool]) -> FlagSet:
        """
        Resolve the complete closed flag set.

        Args:
            defaults: Compiled-in default per flag; missing entries default to False

        Returns:
            Fully populated FlagSet
        """
        values = {flag: self.resolve(flag, defaults.get(flag, False)) for flag in FlagName}
        flags = FlagSet(values)

        logger.info(
            "Migration flags resolved",
            enabled=[flag.value for flag in FlagName if flags[flag]]
        )
        return flags

    def _read_override(self, flag: FlagName) -> Optional[str]:
        if self._override_store is None:
            return None
        try:
            return self._override_store.get(override_key(flag))
        except Exception as e:
            logger.warning(
                "Override store unavailable, falling back to environment default",
                flag=flag.value,
                error=str(e),
                error_type=type(e).__name__
            )
            if self._on_source_error is not None:
                self._on_source_error('get', e)
            return None


__all__ = [
    'FlagResolver',
    'parse_flag_value',
    'format_flag_value',
    'override_key',
    'OVERRIDE_KEY_PREFIX',
    'DEFAULT_ENV_PREFIX',
]
