"""Configuration package for the migration rollout controller."""

from migration_flags.config.settings import RolloutSettings

__all__ = ['RolloutSettings']
