"""
Abstract interfaces for the collaborators the rollout controller uses but does not own.

Implementations translate backend faults (connection errors, timeouts, malformed data)
into ``SourceUnavailable`` so the controller can absorb them uniformly.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, List, Mapping, Optional

if TYPE_CHECKING:
    from migration_flags.rollout.audit import AuditEvent


class OverrideStore(ABC):
    """Key-value source of runtime flag overrides."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value for key, or None when absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key; removing an absent key is not an error."""


class SessionStore(ABC):
    """Session-scoped identity provider."""

    @abstractmethod
    def get_or_create(self) -> str:
        """Return the current session identifier, creating and persisting one if needed."""

    def has_session(self) -> bool:
        """
        Whether a caller session is in scope.

        False means there is no caller to identify (start-up, background work), which
        is not a backend fault.
        """
        return True


class AuditSink(ABC):
    """Persistent append/read store for audit events."""

    @abstractmethod
    def append(self, event: 'AuditEvent', max_events: int) -> None:
        """Append event and drop the oldest events so at most max_events remain."""

    @abstractmethod
    def read_all(self) -> List['AuditEvent']:
        """Return stored events, oldest first."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all stored events."""


class AlertSink(ABC):
    """External alerting collaborator notified on emergency rollback."""

    @abstractmethod
    def notify(self, event_name: str, payload: Mapping[str, Any]) -> None:
        """Deliver a structured notification."""


__all__ = ['OverrideStore', 'SessionStore', 'AuditSink', 'AlertSink']
