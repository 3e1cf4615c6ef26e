"""
In-process store implementations.

Used as the default backend for single-process deployments and throughout the test
suite. All stores are thread-safe.
"""

import uuid
from threading import Lock
from typing import Dict, List, Optional

from migration_flags.storage.base import AuditSink, OverrideStore, SessionStore


class InMemoryOverrideStore(OverrideStore):
    """Dictionary-backed override store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = Lock()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the stored overrides."""
        with self._lock:
            return dict(self._data)


class InMemoryAuditSink(AuditSink):
    """List-backed audit sink."""

    def __init__(self):
        self._lock = Lock()
        self._events: List = []

    def append(self, event, max_events: int) -> None:
        with self._lock:
            self._events.append(event)
            overflow = len(self._events) - max_events
            if overflow > 0:
                del self._events[:overflow]

    def read_all(self) -> List:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class InMemorySessionStore(SessionStore):
    """Process-wide session identity, created lazily on first use."""

    def __init__(self):
        self._lock = Lock()
        self._session_id: Optional[str] = None

    def get_or_create(self) -> str:
        with self._lock:
            if self._session_id is None:
                self._session_id = uuid.uuid4().hex
            return self._session_id


class StaticSessionStore(SessionStore):
    """Fixed session identity, e.g. for batch jobs or pinned test sessions."""

    def __init__(self, session_id: str):
        self._session_id = session_id

    def get_or_create(self) -> str:
        return self._session_id


__all__ = [
    'InMemoryOverrideStore',
    'InMemoryAuditSink',
    'InMemorySessionStore',
    'StaticSessionStore',
]
