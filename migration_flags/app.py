"""
Flask Application Factory

Builds the Flask application hosting the migration rollout controller: configures
structured logging, selects the override store and audit sink backend from settings,
wires the Flask-session identity, Prometheus metrics and optional webhook alerting
into one ``RolloutController`` and registers the migration admin Blueprint.

Usage:
    app = create_app()                                   # settings from environment
    app = create_app(RolloutSettings(rollout_percentage=25))
"""

import uuid
from typing import Any, Optional

import structlog
from flask import Flask

from migration_flags.blueprints.migration import (
    CONTROLLER_EXTENSION_KEY,
    METRICS_EXTENSION_KEY,
    init_migration_blueprint,
)
from migration_flags.config.settings import RolloutSettings
from migration_flags.monitoring.logging import setup_structured_logging
from migration_flags.monitoring.metrics import MigrationMetrics
from migration_flags.rollout.controller import RolloutController
from migration_flags.storage.alerts import WebhookAlertSink
from migration_flags.storage.memory import InMemoryAuditSink, InMemoryOverrideStore
from migration_flags.storage.redis_store import (
    RedisAuditSink,
    RedisOverrideStore,
    create_redis_client,
)
from migration_flags.storage.session import FlaskSessionStore

logger = structlog.get_logger(__name__)


def create_stores(settings: RolloutSettings):
    """
    Create the override store and audit sink for the configured backend.

    Returns:
        Tuple of (override_store, audit_sink)
    """
    if settings.store_backend == 'redis':
        client = create_redis_client(settings.redis_url, timeout=settings.store_timeout)
        return (
            RedisOverrideStore(client, namespace=settings.redis_namespace),
            RedisAuditSink(client, namespace=settings.redis_namespace),
        )
    return InMemoryOverrideStore(), InMemoryAuditSink()


def create_controller(
    settings: RolloutSettings,
    metrics: Optional[MigrationMetrics] = None,
    **collaborators: Any
) -> RolloutController:
    """
    Construct a rollout controller for a Flask deployment.

    Args:
        settings: Rollout settings
        metrics: Optional metrics instance
        **collaborators: Explicit override_store, audit_sink, session_store or
            alert_sink replacing the ones derived from settings

    Returns:
        RolloutController instance
    """
    override_store = collaborators.get('override_store')
    audit_sink = collaborators.get('audit_sink')
    if override_store is None or audit_sink is None:
        default_override_store, default_audit_sink = create_stores(settings)
        override_store = override_store or default_override_store
        audit_sink = audit_sink or default_audit_sink

    alert_sink = collaborators.get('alert_sink')
    if alert_sink is None and settings.alert_webhook_url:
        alert_sink = WebhookAlertSink(settings.alert_webhook_url, timeout=settings.alert_timeout)

    return RolloutController(
        settings,
        override_store=override_store,
        session_store=collaborators.get('session_store') or FlaskSessionStore(),
        audit_sink=audit_sink,
        alert_sink=alert_sink,
        metrics=metrics,
        environ=collaborators.get('environ')
    )


def create_app(
    settings: Optional[RolloutSettings] = None,
    controller: Optional[RolloutController] = None,
    **config_overrides: Any
) -> Flask:
    """
    Create the Flask application.

    Args:
        settings: Rollout settings, read from the environment when omitted
        controller: Pre-built controller; one is constructed from settings when omitted
        **config_overrides: Additional Flask configuration values

    Returns:
        Configured Flask application
    """
    settings = settings or RolloutSettings.from_env()
    setup_structured_logging(settings.log_level, settings.log_format)

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key or uuid.uuid4().hex,
        FLASK_ENV=settings.environment,
        MIGRATION_SETTINGS=settings.to_dict(),
    )
    app.config.update(config_overrides)

    if controller is None:
        metrics = MigrationMetrics(environment=settings.environment) if settings.metrics_enabled else None
        controller = create_controller(settings, metrics=metrics)
    else:
        metrics = controller.metrics

    app.extensions[CONTROLLER_EXTENSION_KEY] = controller
    if metrics is not None:
        app.extensions[METRICS_EXTENSION_KEY] = metrics

    init_migration_blueprint(app)

    logger.info(
        "Migration application created",
        environment=settings.environment,
        store_backend=settings.store_backend,
        phase=controller.phase.value,
        rollout_percentage=controller.rollout_percentage
    )
    return app


def cleanup_application(app: Flask) -> None:
    """Tear down the rollout controller registered on the application."""
    controller = app.extensions.pop(CONTROLLER_EXTENSION_KEY, None)
    if controller is not None:
        controller.close()
    app.extensions.pop(METRICS_EXTENSION_KEY, None)
    logger.info("Migration application cleaned up")


__all__ = ['create_app', 'create_controller', 'create_stores', 'cleanup_application']
