"""Flask Blueprints for the migration rollout controller."""

from migration_flags.blueprints.migration import (
    get_rollout_controller,
    init_migration_blueprint,
    migration_bp,
    requires_new_tracking,
)

__all__ = [
    'migration_bp',
    'get_rollout_controller',
    'init_migration_blueprint',
    'requires_new_tracking',
]
