"""
Shared pytest fixtures for the rollout controller unit tests.

Provides rollout settings, in-memory store doubles, a controller factory and Flask
application fixtures. Every controller receives an explicit empty environment mapping
so the developer's shell never leaks ``MIGRATION_FLAG_*`` values into a test.

Fixtures:
- rollout_settings: default RolloutSettings (monitoring on, 0% rollout)
- override_store / audit_sink: fresh in-memory stores
- make_controller: factory building a RolloutController with overridable collaborators
- metrics: MigrationMetrics on an isolated registry
- app / client: Flask application and test client with the migration Blueprint
"""

from typing import Any, Dict, Optional

import pytest

from migration_flags.app import create_app, create_controller
from migration_flags.config.settings import RolloutSettings
from migration_flags.monitoring.metrics import MigrationMetrics
from migration_flags.rollout.controller import RolloutController
from migration_flags.rollout.flags import FlagName
from migration_flags.storage.base import AlertSink, AuditSink, OverrideStore, SessionStore
from migration_flags.storage.memory import (
    InMemoryAuditSink,
    InMemoryOverrideStore,
    StaticSessionStore,
)

# Hashes to bucket 54 (see test_bucketing)
PINNED_SESSION_ID = "abc"


class FailingOverrideStore(OverrideStore):
    """Override store whose backend is permanently unreachable."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or ConnectionError("override backend down")
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise self.error

    def set(self, key, value):
        self.calls += 1
        raise self.error

    def remove(self, key):
        self.calls += 1
        raise self.error


class FailingSessionStore(SessionStore):
    """Session store that cannot produce an identity."""

    def get_or_create(self):
        raise TimeoutError("session backend timed out")


class FailingAuditSink(AuditSink):
    """Audit sink rejecting every operation."""

    def append(self, event, max_events):
        raise ConnectionError("audit backend down")

    def read_all(self):
        raise ConnectionError("audit backend down")

    def clear(self):
        raise ConnectionError("audit backend down")


class RecordingAlertSink(AlertSink):
    """Alert sink collecting notifications for assertions."""

    def __init__(self, error: Optional[Exception] = None):
        self.notifications = []
        self.error = error

    def notify(self, event_name, payload):
        self.notifications.append((event_name, dict(payload)))
        if self.error is not None:
            raise self.error


@pytest.fixture
def rollout_settings():
    """Default settings: monitoring enabled, nothing rolled out."""
    return RolloutSettings(log_format='console', metrics_enabled=False)


@pytest.fixture
def override_store():
    return InMemoryOverrideStore()


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def metrics():
    """Metrics bound to their own registry."""
    return MigrationMetrics(environment='testing')


@pytest.fixture
def make_controller(override_store, audit_sink):
    """
    Factory building controllers with in-memory collaborators.

    Keyword arguments:
        flags: Mapping of flag overrides applied to the compiled defaults
        rollout_percentage: Configured rollout percentage
        session_id: Pinned session identity (ignored when session_store is given)
        environ: Environment mapping for flag defaults (empty by default)
        Any other keyword is passed to RolloutController unchanged.
    """
    created = []

    def _make(
        flags: Optional[Dict[Any, bool]] = None,
        rollout_percentage: int = 0,
        session_id: str = PINNED_SESSION_ID,
        environ: Optional[Dict[str, str]] = None,
        **collaborators: Any
    ) -> RolloutController:
        settings = RolloutSettings(
            flag_defaults=dict(flags or {}),
            rollout_percentage=rollout_percentage
        )
        collaborators.setdefault('override_store', override_store)
        collaborators.setdefault('audit_sink', audit_sink)
        collaborators.setdefault('session_store', StaticSessionStore(session_id))
        controller = RolloutController(
            settings,
            environ=environ if environ is not None else {},
            **collaborators
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        controller.close()


@pytest.fixture
def migrating_flags():
    """Flags for a session-level migration in progress (parallel phase)."""
    return {FlagName.GTM_ENABLED: True, FlagName.PARALLEL_TRACKING: True}


@pytest.fixture
def app(override_store, audit_sink):
    """Flask application with the migration Blueprint and a fresh controller."""
    settings = RolloutSettings(
        flag_defaults={FlagName.GTM_ENABLED: True},
        rollout_percentage=100,
        environment='testing',
        secret_key='test-secret-key',
        log_format='console'
    )
    metrics = MigrationMetrics(environment='testing')
    controller = create_controller(
        settings,
        metrics=metrics,
        override_store=override_store,
        audit_sink=audit_sink,
        environ={}
    )
    flask_app = create_app(settings, controller=controller, TESTING=True)
    yield flask_app
    controller.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def failing_override_store():
    return FailingOverrideStore()


@pytest.fixture
def failing_session_store():
    return FailingSessionStore()


@pytest.fixture
def failing_audit_sink():
    return FailingAuditSink()


@pytest.fixture
def alert_sink():
    return RecordingAlertSink()


@pytest.fixture
def broken_alert_sink():
    return RecordingAlertSink(error=ConnectionError("pager unreachable"))
