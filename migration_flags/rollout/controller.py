"""
Rollout Controller for the Tracking Migration

Orchestrates the phased migration from the legacy client-side tracking mechanism to
the new one. The controller owns the canonical flag snapshot and the derived migration
phase, answers per-session routing decisions, applies runtime flag mutations and
performs emergency rollback.

Key behaviour:
- Flags resolve once at construction (override store > environment > configured default)
- The phase is re-derived synchronously on every mutation and published together with
  the flag snapshot as one immutable state object, so readers never see a phase that
  disagrees with the flags that produced it
- Mutations are serialized on a reentrant lock; reads are lock-free
- Percentage rollout buckets the caller's session identity with ``ConsistentBucketer``
- Every tracked state change is appended to a capacity-bounded audit trail
- Store, audit and alerting faults are logged and absorbed; decision queries never fail
  and fall back to the legacy path when inputs are ambiguous
"""

from dataclasses import dataclass
from threading import RLock
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

import structlog

from migration_flags.exceptions import ControllerClosedError
from migration_flags.rollout.audit import AuditEvent, AuditLog
from migration_flags.rollout.bucketing import ConsistentBucketer
from migration_flags.rollout.flags import FlagKey, FlagName, FlagSet, coerce_flag_name
from migration_flags.rollout.phase import INACTIVE_PHASES, MigrationPhase, derive_phase
from migration_flags.rollout.resolver import FlagResolver, format_flag_value, override_key
from migration_flags.storage.base import AlertSink, AuditSink, OverrideStore, SessionStore

if TYPE_CHECKING:
    from migration_flags.config.settings import RolloutSettings

feature_flag_logger = structlog.get_logger("migration_flags.rollout")
rollback_logger = structlog.get_logger("migration_flags.rollback")

# Component name -> flag controlling whether that component uses the new path
COMPONENT_FLAG_MAP: Mapping[str, FlagName] = {
    'checkout': FlagName.CHECKOUT_TRACKING,
    'payment': FlagName.PAYMENT_TRACKING,
    'thankyou': FlagName.THANKYOU_TRACKING,
}

ROLLBACK_ALERT_EVENT = 'migration_emergency_rollback'


@dataclass(frozen=True)
class _ControllerState:
    flags: FlagSet
    phase: MigrationPhase


@dataclass(frozen=True)
class MigrationStatus:
    """Read-only snapshot of the controller."""
    phase: MigrationPhase
    rollout_percentage: int
    should_use_new_path: bool
    should_use_parallel_tracking: bool
    flags: FlagSet
    session_id: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert status to dictionary for JSON serialization."""
        return {
            'phase': self.phase.value,
            'rollout_percentage': self.rollout_percentage,
            'should_use_new_path': self.should_use_new_path,
            'should_use_parallel_tracking': self.should_use_parallel_tracking,
            'flags': self.flags.to_dict(),
            'session_id': self.session_id
        }


class RolloutController:
    """
    Runtime feature-flag controller for the tracking migration.

    Lifecycle is explicit: construct one instance with its collaborators, pass it to
    the code that needs routing decisions, and call ``close()`` on teardown.
    """

    def __init__(
        self,
        settings: 'RolloutSettings',
        override_store: OverrideStore,
        session_store: SessionStore,
        audit_sink: AuditSink,
        alert_sink: Optional[AlertSink] = None,
        metrics=None,
        environ: Optional[Mapping[str, str]] = None
    ):
        """
        Resolve the flag snapshot, derive the initial phase and, when monitoring is
        enabled, record the initial audit event.

        Args:
            settings: Flag defaults, rollout percentage and environment prefix
            override_store: Runtime override source (read at start-up, written on update)
            session_store: Provider of the caller's session identity
            audit_sink: Persistent store for audit events
            alert_sink: Optional external alerting collaborator for emergency rollback
            metrics: Optional ``MigrationMetrics`` instance
            environ: Environment mapping for flag defaults, defaults to ``os.environ``
        """
        self._lock = RLock()
        self._closed = False
        self._override_store = override_store
        self._session_store = session_store
        self._alert_sink = alert_sink
        self._metrics = metrics
        self._configured_percentage = int(settings.rollout_percentage)
        self._audit = AuditLog(
            audit_sink,
            on_error=lambda operation, error: self._record_store_error('audit', operation)
        )

        resolver = FlagResolver(
            override_store,
            environ=environ,
            env_prefix=settings.env_prefix,
            on_source_error=lambda operation, error: self._record_store_error('override', operation)
        )
        flags = resolver.resolve_all(settings.flag_defaults)
        self._state = _ControllerState(flags=flags, phase=derive_phase(flags))
        self._publish_metrics(self._state)

        feature_flag_logger.info(
            "Rollout controller initialized",
            phase=self._state.phase.value,
            rollout_percentage=self.rollout_percentage,
            configured_percentage=self._configured_percentage,
            alerting_enabled=alert_sink is not None
        )

        if flags[FlagName.MIGRATION_MONITORING_ENABLED]:
            state = self._state
            self._append_event('migration_phase_determined', state, {
                'phase': state.phase.value,
                'rollout_percentage': self.rollout_percentage,
                'should_use_new_path': self._uses_new_path(state, record=False),
                'flags': state.flags.to_dict()
            })

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def phase(self) -> MigrationPhase:
        return self._state.phase

    @property
    def flags(self) -> FlagSet:
        return self._state.flags

    @property
    def rollout_percentage(self) -> int:
        """Configured rollout percentage clamped into [0, 100]."""
        return max(0, min(100, self._configured_percentage))

    @property
    def configured_rollout_percentage(self) -> int:
        """Rollout percentage exactly as configured, before clamping."""
        return self._configured_percentage

    @property
    def metrics(self):
        """Injected ``MigrationMetrics`` instance, if any."""
        return self._metrics

    @property
    def closed(self) -> bool:
        return self._closed

    def is_rollback_active(self) -> bool:
        return self._state.phase is MigrationPhase.ROLLBACK

    # ------------------------------------------------------------------
    # Decision queries
    # ------------------------------------------------------------------

    def should_use_new_path(self) -> bool:
        """
        Decide whether the current session uses the new tracking path.

        Returns:
            False in rollback or legacy phase; True at 100% rollout; otherwise True
            iff the session's bucket is below the rollout percentage
        """
        return self._uses_new_path(self._state)

    def should_use_parallel_tracking(self) -> bool:
        """Parallel tracking requires the parallel flag and a session on the new path."""
        state = self._state
        return state.flags[FlagName.PARALLEL_TRACKING] and self._uses_new_path(state)

    def should_use_component(self, name: str) -> bool:
        """
        Decide whether a tracking component uses the new path.

        Args:
            name: Component name (checkout, payment, thankyou)

        Returns:
            The component's flag value when the session is on the new path; False for
            unknown components or sessions on the legacy path
        """
        state = self._state
        if not self._uses_new_path(state):
            return False

        flag = COMPONENT_FLAG_MAP.get(name)
        if flag is None:
            return False
        return state.flags[flag]

    def status(self) -> MigrationStatus:
        """Read-only snapshot of phase, percentage, decisions, flags and session identity."""
        state = self._state
        use_new_path = self._uses_new_path(state, record=False)
        return MigrationStatus(
            phase=state.phase,
            rollout_percentage=self.rollout_percentage,
            should_use_new_path=use_new_path,
            should_use_parallel_tracking=state.flags[FlagName.PARALLEL_TRACKING] and use_new_path,
            flags=state.flags,
            session_id=self._current_session_id()
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_flag(self, name: FlagKey, value: bool) -> None:
        """
        Change one flag at runtime.

        Persists the override, publishes the new flag snapshot with its re-derived
        phase and appends a ``flag_updated`` audit event, all under the mutation lock.

        Args:
            name: Flag to change
            value: New flag value

        Raises:
            UnknownFlagError: If name is not part of the closed flag set
            ControllerClosedError: If the controller has been closed
        """
        flag = coerce_flag_name(name)
        value = bool(value)

        with self._lock:
            self._ensure_open('update flag')

            previous = self._state
            flags = previous.flags.replace(flag, value)
            state = _ControllerState(flags=flags, phase=derive_phase(flags))

            self._persist_override(flag, value)
            self._state = state

            feature_flag_logger.info(
                "Migration flag updated",
                flag=flag.value,
                value=value,
                previous_phase=previous.phase.value,
                phase=state.phase.value
            )

            if self._metrics is not None:
                self._metrics.record_flag_update(flag, value)
            self._publish_metrics(state)

            # Switching monitoring off is itself audited
            if (previous.flags[FlagName.MIGRATION_MONITORING_ENABLED]
                    or flags[FlagName.MIGRATION_MONITORING_ENABLED]):
                self._append_event('flag_updated', state, {
                    'flag_name': flag.value,
                    'value': value,
                    'new_phase': state.phase.value
                })

    def emergency_rollback(self, reason: str) -> None:
        """
        Disable the new tracking path immediately.

        Engages ``emergency_rollback_enabled``, disables ``gtm_enabled``, records an
        ``emergency_rollback_triggered`` event and notifies the alerting collaborator
        if one is registered. Repeated calls leave the controller in ``rollback``.

        Args:
            reason: Operator- or monitor-supplied reason for the rollback

        Raises:
            ControllerClosedError: If the controller has been closed
        """
        with self._lock:
            self._ensure_open('trigger emergency rollback')

            previous_phase = self._state.phase
            self.update_flag(FlagName.EMERGENCY_ROLLBACK_ENABLED, True)
            self.update_flag(FlagName.GTM_ENABLED, False)

            state = self._state
            if state.flags[FlagName.MIGRATION_MONITORING_ENABLED]:
                self._append_event('emergency_rollback_triggered', state, {'reason': reason})

            if self._metrics is not None:
                self._metrics.record_rollback()

            rollback_logger.critical(
                "Emergency rollback triggered",
                reason=reason,
                previous_phase=previous_phase.value,
                phase=state.phase.value
            )

        self._notify_alert(reason)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def events(self) -> List[AuditEvent]:
        """Audit events, oldest first."""
        return self._audit.events()

    def clear_events(self) -> bool:
        """Clear the audit trail (explicit operator action)."""
        cleared = self._audit.clear()
        feature_flag_logger.warning("Migration audit trail cleared", success=cleared)
        return cleared

    def close(self) -> None:
        """Tear the controller down; further mutations raise ``ControllerClosedError``."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        feature_flag_logger.info(
            "Rollout controller closed",
            phase=self._state.phase.value
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _uses_new_path(self, state: _ControllerState, record: bool = True) -> bool:
        decision = self._decide(state)
        if record and self._metrics is not None:
            self._metrics.record_decision(decision)
        return decision

    def _decide(self, state: _ControllerState) -> bool:
        if state.phase in INACTIVE_PHASES:
            return False

        percentage = self.rollout_percentage
        if percentage >= 100:
            return True
        if percentage <= 0:
            return False

        session_id = self._current_session_id()
        if session_id is None:
            return False
        return ConsistentBucketer.bucket(session_id) < percentage

    def _current_session_id(self) -> Optional[str]:
        try:
            # No caller in scope: not bucketed, and not a store fault
            if not self._session_store.has_session():
                return None
            session_id = self._session_store.get_or_create()
        except Exception as e:
            feature_flag_logger.warning(
                "Session store unavailable, treating session as not bucketed",
                error=str(e),
                error_type=type(e).__name__
            )
            self._record_store_error('session', 'get_or_create')
            return None

        if not isinstance(session_id, str):
            self._record_store_error('session', 'get_or_create')
            return None
        return session_id

    def _persist_override(self, flag: FlagName, value: bool):
        try:
            self._override_store.set(override_key(flag), format_flag_value(value))
        except Exception as e:
            feature_flag_logger.error(
                "Failed to persist flag override",
                flag=flag.value,
                value=value,
                error=str(e),
                error_type=type(e).__name__
            )
            self._record_store_error('override', 'set')

    def _append_event(self, event_name: str, state: _ControllerState, payload: Dict[str, Any]):
        event = AuditEvent(
            event_name=event_name,
            phase=state.phase,
            session_id=self._current_session_id(),
            payload=payload
        )
        self._audit.append(event)

    def _notify_alert(self, reason: str):
        if self._alert_sink is None:
            return
        try:
            self._alert_sink.notify(ROLLBACK_ALERT_EVENT, {
                'event_category': 'migration',
                'event_label': reason
            })
        except Exception as e:
            rollback_logger.error(
                "Failed to deliver emergency rollback alert",
                reason=reason,
                error=str(e),
                error_type=type(e).__name__
            )
            self._record_store_error('alert', 'notify')

    def _publish_metrics(self, state: _ControllerState):
        if self._metrics is None:
            return
        try:
            self._metrics.observe_state(state.flags, state.phase, self.rollout_percentage)
        except Exception as e:
            feature_flag_logger.error("Error updating metrics", error=str(e))

    def _record_store_error(self, store: str, operation: str):
        if self._metrics is not None:
            self._metrics.record_store_error(store, operation)

    def _ensure_open(self, operation: str):
        if self._closed:
            raise ControllerClosedError(operation)


__all__ = ['RolloutController', 'MigrationStatus', 'COMPONENT_FLAG_MAP', 'ROLLBACK_ALERT_EVENT']
