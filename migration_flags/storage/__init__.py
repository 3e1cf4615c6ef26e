"""
Pluggable stores used by the rollout controller: override stores, session stores,
audit sinks and alert sinks, with in-memory, Redis, Flask-session and webhook
implementations.
"""

from migration_flags.storage.base import AlertSink, AuditSink, OverrideStore, SessionStore
from migration_flags.storage.memory import (
    InMemoryAuditSink,
    InMemoryOverrideStore,
    InMemorySessionStore,
    StaticSessionStore,
)
from migration_flags.storage.redis_store import (
    RedisAuditSink,
    RedisOverrideStore,
    create_redis_client,
)
from migration_flags.storage.session import FlaskSessionStore
from migration_flags.storage.alerts import WebhookAlertSink

__all__ = [
    'OverrideStore',
    'SessionStore',
    'AuditSink',
    'AlertSink',
    'InMemoryOverrideStore',
    'InMemoryAuditSink',
    'InMemorySessionStore',
    'StaticSessionStore',
    'RedisOverrideStore',
    'RedisAuditSink',
    'create_redis_client',
    'FlaskSessionStore',
    'WebhookAlertSink',
]
