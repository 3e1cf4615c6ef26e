"""
Rollout Controller Settings

Configuration surface consumed when the rollout controller and its Flask application
are constructed: compiled-in flag defaults, the rollout percentage, store backend
selection, alerting and logging options. Values are read from the process environment,
with ``.env`` files loaded through python-dotenv.

Environment variables:
- MIGRATION_ROLLOUT_PERCENTAGE: Percentage of sessions routed to the new tracking path
- MIGRATION_FLAG_ENV_PREFIX: Prefix of per-flag environment defaults (MIGRATION_FLAG_)
- MIGRATION_STORE_BACKEND: Override and audit store backend (memory, redis)
- MIGRATION_REDIS_URL / MIGRATION_REDIS_NAMESPACE: Redis backend location
- MIGRATION_STORE_TIMEOUT: Socket timeout in seconds for store calls
- MIGRATION_ALERT_WEBHOOK_URL / MIGRATION_ALERT_TIMEOUT: Emergency rollback alerting
- FLASK_ENV, SECRET_KEY, LOG_LEVEL, LOG_FORMAT: Application settings
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from migration_flags.exceptions import ConfigurationError, UnknownFlagError
from migration_flags.rollout.flags import DEFAULT_FLAG_VALUES, FlagName, coerce_flag_name

# Load environment variables early
load_dotenv()

SUPPORTED_BACKENDS = ('memory', 'redis')
SUPPORTED_LOG_FORMATS = ('json', 'console')


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class RolloutSettings:
    """
    Settings for a rollout controller instance.

    ``rollout_percentage`` keeps the configured value as-is; the controller clamps it
    into [0, 100] on read so the health check can still report an out-of-range value.
    """
    flag_defaults: Dict[FlagName, bool] = field(default_factory=lambda: dict(DEFAULT_FLAG_VALUES))
    rollout_percentage: int = 0
    env_prefix: str = 'MIGRATION_FLAG_'

    # Store backend
    store_backend: str = 'memory'
    redis_url: str = 'redis://localhost:6379/2'
    redis_namespace: str = 'migration_flags'
    store_timeout: float = 0.25

    # Alerting
    alert_webhook_url: Optional[str] = None
    alert_timeout: float = 2.0

    # Application
    environment: str = 'development'
    secret_key: Optional[str] = None
    log_level: str = 'INFO'
    log_format: str = 'json'
    metrics_enabled: bool = True

    def __post_init__(self):
        defaults = dict(DEFAULT_FLAG_VALUES)
        try:
            for name, value in self.flag_defaults.items():
                defaults[coerce_flag_name(name)] = bool(value)
        except UnknownFlagError as e:
            raise ConfigurationError(
                f"Unknown flag in flag_defaults: {e.flag_name!r}",
                details={'flag_name': str(e.flag_name)}
            ) from None
        self.flag_defaults = defaults

        self.store_backend = self.store_backend.lower()
        if self.store_backend not in SUPPORTED_BACKENDS:
            raise ConfigurationError(
                f"Unsupported store backend: {self.store_backend}",
                details={'supported': list(SUPPORTED_BACKENDS)}
            )

        self.log_format = self.log_format.lower()
        if self.log_format not in SUPPORTED_LOG_FORMATS:
            raise ConfigurationError(
                f"Unsupported log format: {self.log_format}",
                details={'supported': list(SUPPORTED_LOG_FORMATS)}
            )

        if self.store_timeout <= 0:
            raise ConfigurationError("store_timeout must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> 'RolloutSettings':
        """
        Build settings from environment variables.

        Args:
            environ: Environment mapping, defaults to ``os.environ``
            **overrides: Explicit values taking precedence over the environment

        Returns:
            RolloutSettings instance
        """
        env = os.environ if environ is None else environ

        values: Dict[str, Any] = {
            'rollout_percentage': _parse_int(env.get('MIGRATION_ROLLOUT_PERCENTAGE'), 0),
            'env_prefix': env.get('MIGRATION_FLAG_ENV_PREFIX', 'MIGRATION_FLAG_'),
            'store_backend': env.get('MIGRATION_STORE_BACKEND', 'memory'),
            'redis_url': env.get('MIGRATION_REDIS_URL', env.get('REDIS_URL', 'redis://localhost:6379/2')),
            'redis_namespace': env.get('MIGRATION_REDIS_NAMESPACE', 'migration_flags'),
            'store_timeout': _parse_float(env.get('MIGRATION_STORE_TIMEOUT'), 0.25),
            'alert_webhook_url': env.get('MIGRATION_ALERT_WEBHOOK_URL') or None,
            'alert_timeout': _parse_float(env.get('MIGRATION_ALERT_TIMEOUT'), 2.0),
            'environment': env.get('FLASK_ENV', 'development'),
            'secret_key': env.get('SECRET_KEY') or None,
            'log_level': env.get('LOG_LEVEL', 'INFO').upper(),
            'log_format': env.get('LOG_FORMAT', 'json'),
            'metrics_enabled': env.get('PROMETHEUS_ENABLED', 'true').lower() == 'true',
        }
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a dictionary, omitting secrets."""
        return {
            'flag_defaults': {flag.value: value for flag, value in self.flag_defaults.items()},
            'rollout_percentage': self.rollout_percentage,
            'env_prefix': self.env_prefix,
            'store_backend': self.store_backend,
            'redis_namespace': self.redis_namespace,
            'store_timeout': self.store_timeout,
            'alerting_enabled': self.alert_webhook_url is not None,
            'environment': self.environment,
            'log_level': self.log_level,
            'log_format': self.log_format,
            'metrics_enabled': self.metrics_enabled,
        }


__all__ = ['RolloutSettings', 'SUPPORTED_BACKENDS', 'SUPPORTED_LOG_FORMATS']
