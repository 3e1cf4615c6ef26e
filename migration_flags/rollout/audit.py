"""
Append-only, capacity-bounded audit trail for flag changes and phase transitions.

``AuditEvent`` is the immutable record appended by the rollout controller on every
tracked state change. ``AuditLog`` wraps an injected ``AuditSink`` and enforces the
ring capacity at append time (oldest events are dropped first), so sinks only need to
honour the limit they are handed. Sink failures are logged and absorbed: a broken
audit backend must never break a flag mutation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import structlog

from migration_flags.rollout.phase import MigrationPhase

if TYPE_CHECKING:
    from migration_flags.storage.base import AuditSink

logger = structlog.get_logger(__name__)

# Most recent events kept by the audit trail
AUDIT_CAPACITY = 100


@dataclass(frozen=True)
class AuditEvent:
    """
    Immutable audit record.

    Attributes:
        event_name: Event identifier (flag_updated, emergency_rollback_triggered, ...)
        phase: Migration phase at emission time
        session_id: Session identity at emission time, None when unavailable
        payload: Event-specific data, read-only
        timestamp: Emission time (UTC)
    """
    event_name: str
    phase: MigrationPhase
    session_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, 'payload', MappingProxyType(dict(self.payload)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {
            'timestamp': self.timestamp.isoformat(),
            'event': self.event_name,
            'phase': self.phase.value,
            'session_id': self.session_id,
            'payload': dict(self.payload)
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'AuditEvent':
        """
        Create AuditEvent from its dictionary form.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the phase or timestamp is malformed
        """
        return cls(
            event_name=data['event'],
            phase=MigrationPhase(data['phase']),
            session_id=data.get('session_id'),
            payload=data.get('payload') or {},
            timestamp=datetime.fromisoformat(data['timestamp'])
        )


class AuditLog:
    """Bounded audit trail over a pluggable sink."""

    def __init__(self, sink: 'AuditSink', capacity: int = AUDIT_CAPACITY, on_error=None):
        """
        Args:
            sink: Persistent append/read store for audit events
            capacity: Maximum number of events retained
            on_error: Optional callback ``(operation, exc)`` invoked on absorbed sink faults
        """
        if capacity < 1:
            raise ValueError("Audit capacity must be positive")
        self._sink = sink
        self._capacity = capacity
        self._on_error = on_error

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, event: AuditEvent) -> bool:
        """
        Append an event, evicting the oldest ones beyond capacity.

        Returns:
            True if the sink accepted the event, False otherwise
        """
        try:
            self._sink.append(event, self._capacity)
            return True
        except Exception as e:
            self._report('append', e, event_name=event.event_name)
            return False

    def events(self) -> List[AuditEvent]:
        """
        Read the audit trail, oldest first.

        Returns:
            Up to ``capacity`` most recent events; empty list if the sink is unavailable
        """
        try:
            events = list(self._sink.read_all())
        except Exception as e:
            self._report('read_all', e)
            return []
        return events[-self._capacity:]

    def clear(self) -> bool:
        """
        Clear the audit trail (explicit operator action).

        Returns:
            True if the sink was cleared, False otherwise
        """
        try:
            self._sink.clear()
            return True
        except Exception as e:
            self._report('clear', e)
            return False

    def _report(self, operation: str, error: Exception, **context):
        logger.error(
            "Audit sink operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context
        )
        if self._on_error is not None:
            self._on_error(operation, error)


__all__ = ['AuditEvent', 'AuditLog', 'AUDIT_CAPACITY']
