"""
Redis-backed override store and audit sink.

Lets several worker processes share runtime flag overrides and one audit trail. Clients
are built with short socket timeouts so a slow or unreachable Redis never stalls the
decision path; every ``redis.RedisError`` (timeouts included) is raised as
``SourceUnavailable`` and treated by the controller as "source absent".
"""

import json
from typing import Any, Dict, List, Optional

import redis
import structlog

from migration_flags.exceptions import SourceUnavailable
from migration_flags.rollout.audit import AuditEvent
from migration_flags.storage.base import AuditSink, OverrideStore

logger = structlog.get_logger(__name__)

DEFAULT_NAMESPACE = "migration_flags"


def create_redis_client(url: str, timeout: float = 0.25) -> redis.Redis:
    """
    Create a Redis client with time-bounded socket operations.

    The connection is opened lazily on the first command, so constructing the client
    never blocks application start-up.

    Args:
        url: Redis connection URL (redis://host:port/db)
        timeout: Socket and connect timeout in seconds

    Returns:
        Configured Redis client
    """
    client = redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
        retry_on_timeout=False,
        health_check_interval=30
    )

    logger.info(
        "Redis client configured for migration flags",
        url=_sanitize_url(url),
        socket_timeout=timeout
    )
    return client


def _sanitize_url(url: str) -> str:
    # Strip credentials before logging
    if '@' in url:
        scheme, _, rest = url.partition('://')
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return url


class RedisOverrideStore(OverrideStore):
    """Override store persisting keys as plain Redis strings under a namespace."""

    def __init__(self, client: redis.Redis, namespace: str = DEFAULT_NAMESPACE):
        self._client = client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self._client.get(self._key(key))
        except redis.RedisError as e:
            raise SourceUnavailable('override', 'get', e) from e

        if isinstance(value, bytes):
            try:
                return value.decode('utf-8')
            except UnicodeDecodeError as e:
                raise SourceUnavailable('override', 'get', e) from e
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._key(key), value)
        except redis.RedisError as e:
            raise SourceUnavailable('override', 'set', e) from e

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except redis.RedisError as e:
            raise SourceUnavailable('override', 'remove', e) from e


class RedisAuditSink(AuditSink):
    """
    Audit sink storing JSON-encoded events in a Redis list, oldest first.

    Append and trim run in one MULTI/EXEC pipeline so concurrent writers never leave
    more than ``max_events`` entries behind.
    """

    def __init__(self, client: redis.Redis, namespace: str = DEFAULT_NAMESPACE):
        self._client = client
        self._key = f"{namespace}:events"

    def append(self, event: AuditEvent, max_events: int) -> None:
        data = json.dumps(event.to_dict(), default=str)
        try:
            pipeline = self._client.pipeline(transaction=True)
            pipeline.rpush(self._key, data)
            pipeline.ltrim(self._key, -max_events, -1)
            pipeline.execute()
        except redis.RedisError as e:
            raise SourceUnavailable('audit', 'append', e) from e

    def read_all(self) -> List[AuditEvent]:
        try:
            raw_events = self._client.lrange(self._key, 0, -1)
        except redis.RedisError as e:
            raise SourceUnavailable('audit', 'read_all', e) from e

        events = []
        for raw in raw_events:
            event = self._decode(raw)
            if event is not None:
                events.append(event)
        return events

    def clear(self) -> None:
        try:
            self._client.delete(self._key)
        except redis.RedisError as e:
            raise SourceUnavailable('audit', 'clear', e) from e

    def _decode(self, raw: Any) -> Optional[AuditEvent]:
        try:
            data: Dict[str, Any] = json.loads(raw)
            return AuditEvent.from_dict(data)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(
                "Skipping malformed audit record",
                key=self._key,
                error=str(e)
            )
            return None


__all__ = [
    'RedisOverrideStore',
    'RedisAuditSink',
    'create_redis_client',
    'DEFAULT_NAMESPACE',
]
