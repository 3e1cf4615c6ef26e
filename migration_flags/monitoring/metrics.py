"""
Prometheus metrics for the rollout controller.

Each ``MigrationMetrics`` instance owns its own ``CollectorRegistry`` so several
controllers (one per application or per test) never collide on metric names.
"""

from typing import Mapping, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest
from prometheus_client import Enum as EnumMetric

from migration_flags.rollout.flags import FlagName
from migration_flags.rollout.phase import MigrationPhase


class MigrationMetrics:
    """
    Prometheus metrics for migration progress, flag operations, rollbacks and store
    health.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, environment: str = 'development'):
        """Initialize Prometheus metrics for migration monitoring."""
        self.registry = registry or CollectorRegistry()
        self.environment = environment

        # Migration progress metrics
        self.phase = EnumMetric(
            'migration_phase',
            'Current tracking migration phase',
            ['environment'],
            states=[phase.value for phase in MigrationPhase],
            registry=self.registry
        )

        self.rollout_percentage = Gauge(
            'migration_rollout_percentage',
            'Effective percentage of sessions routed to the new tracking path',
            ['environment'],
            registry=self.registry
        )

        self.flag_value = Gauge(
            'migration_flag_value',
            'Current migration flag values (1=enabled, 0=disabled)',
            ['environment', 'flag'],
            registry=self.registry
        )

        # Flag operation metrics
        self.flag_updates_counter = Counter(
            'migration_flag_updates_total',
            'Total runtime flag updates by flag and value',
            ['environment', 'flag', 'value'],
            registry=self.registry
        )

        self.rollback_counter = Counter(
            'migration_emergency_rollbacks_total',
            'Total emergency rollbacks triggered',
            ['environment'],
            registry=self.registry
        )

        self.decision_counter = Counter(
            'migration_path_decisions_total',
            'Total tracking path decisions by outcome',
            ['environment', 'path'],
            registry=self.registry
        )

        # Store health metrics
        self.store_errors_counter = Counter(
            'migration_store_errors_total',
            'Total absorbed store failures by store and operation',
            ['environment', 'store', 'operation'],
            registry=self.registry
        )

    def observe_state(self, flags: Mapping[FlagName, bool], phase: MigrationPhase, rollout_percentage: int):
        """Publish the current flag snapshot, phase and effective rollout percentage."""
        self.phase.labels(environment=self.environment).state(phase.value)
        self.rollout_percentage.labels(environment=self.environment).set(rollout_percentage)
        for flag in FlagName:
            self.flag_value.labels(environment=self.environment, flag=flag.value).set(1 if flags[flag] else 0)

    def record_flag_update(self, flag: FlagName, value: bool):
        self.flag_updates_counter.labels(
            environment=self.environment,
            flag=flag.value,
            value=str(bool(value)).lower()
        ).inc()

    def record_rollback(self):
        self.rollback_counter.labels(environment=self.environment).inc()

    def record_decision(self, use_new_path: bool):
        self.decision_counter.labels(
            environment=self.environment,
            path='new' if use_new_path else 'legacy'
        ).inc()

    def record_store_error(self, store: str, operation: str):
        self.store_errors_counter.labels(
            environment=self.environment,
            store=store,
            operation=operation
        ).inc()

    def get_sample_value(self, name: str, labels: Optional[Mapping[str, str]] = None) -> Optional[float]:
        """Read a sample from this instance's registry, injecting the environment label."""
        sample_labels = {'environment': self.environment}
        sample_labels.update(labels or {})
        return self.registry.get_sample_value(name, sample_labels)

    def render(self) -> bytes:
        """Render metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)


__all__ = ['MigrationMetrics']
