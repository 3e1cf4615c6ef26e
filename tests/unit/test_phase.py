"""
Unit tests for flag sets and migration phase derivation.
"""

import itertools

import pytest

from migration_flags.exceptions import UnknownFlagError
from migration_flags.rollout.flags import (
    COMPONENT_FLAGS,
    DEFAULT_FLAG_VALUES,
    FlagName,
    FlagSet,
    coerce_flag_name,
)
from migration_flags.rollout.phase import INACTIVE_PHASES, MigrationPhase, derive_phase


def _flags(**enabled):
    values = {flag: False for flag in FlagName}
    for name, value in enabled.items():
        values[FlagName(name)] = value
    return FlagSet(values)


class TestFlagSet:
    """Immutable closed flag snapshot."""

    @pytest.mark.unit
    def test_defaults(self):
        flags = FlagSet.defaults()

        assert len(flags) == 11
        assert flags.to_dict() == {flag.value: value for flag, value in DEFAULT_FLAG_VALUES.items()}
        assert flags[FlagName.PARALLEL_TRACKING] is True
        assert flags[FlagName.MIGRATION_MONITORING_ENABLED] is True
        assert flags[FlagName.CONVERSION_VALIDATION_ENABLED] is True
        assert flags[FlagName.LEGACY_TRACKING_FALLBACK] is True
        assert flags[FlagName.GTM_ENABLED] is False
        assert flags[FlagName.EMERGENCY_ROLLBACK_ENABLED] is False

    @pytest.mark.unit
    def test_lookup_by_string_value(self):
        flags = FlagSet.defaults()
        assert flags['parallel_tracking'] is flags[FlagName.PARALLEL_TRACKING]
        assert 'gtm_enabled' in flags
        assert 'not_a_flag' not in flags

    @pytest.mark.unit
    def test_missing_flags_are_rejected(self):
        with pytest.raises(ValueError, match="missing"):
            FlagSet({FlagName.GTM_ENABLED: True})

    @pytest.mark.unit
    def test_unknown_flag_is_rejected(self):
        values = dict(DEFAULT_FLAG_VALUES)
        values['beta_widget'] = True
        with pytest.raises(UnknownFlagError):
            FlagSet(values)

    @pytest.mark.unit
    def test_replace_returns_new_snapshot(self):
        original = FlagSet.defaults()
        updated = original.replace('gtm_enabled', True)

        assert updated[FlagName.GTM_ENABLED] is True
        assert original[FlagName.GTM_ENABLED] is False
        assert updated != original
        assert original.replace(FlagName.GTM_ENABLED, False) == original

    @pytest.mark.unit
    def test_replace_unknown_flag(self):
        with pytest.raises(UnknownFlagError) as exc_info:
            FlagSet.defaults().replace('beta_widget', True)
        assert exc_info.value.flag_name == 'beta_widget'
        assert exc_info.value.error_code == 'UNKNOWN_FLAG'

    @pytest.mark.unit
    def test_equal_snapshots_hash_equally(self):
        assert hash(FlagSet.defaults()) == hash(FlagSet(dict(DEFAULT_FLAG_VALUES)))

    @pytest.mark.unit
    def test_coerce_flag_name(self):
        assert coerce_flag_name('thankyou_tracking') is FlagName.THANKYOU_TRACKING
        assert coerce_flag_name(FlagName.GTM_ENABLED) is FlagName.GTM_ENABLED
        with pytest.raises(UnknownFlagError):
            coerce_flag_name('GTM_ENABLED')


class TestDerivePhase:
    """Priority-ordered phase derivation."""

    @pytest.mark.unit
    def test_rollback_wins_over_everything(self):
        flags = FlagSet({flag: True for flag in FlagName})
        assert derive_phase(flags) is MigrationPhase.ROLLBACK

    @pytest.mark.unit
    def test_legacy_when_gtm_disabled(self):
        assert derive_phase(_flags(parallel_tracking=True, checkout_tracking=True)) is MigrationPhase.LEGACY

    @pytest.mark.unit
    def test_defaults_derive_legacy(self):
        assert derive_phase(FlagSet.defaults()) is MigrationPhase.LEGACY

    @pytest.mark.unit
    def test_parallel(self):
        assert derive_phase(_flags(gtm_enabled=True, parallel_tracking=True)) is MigrationPhase.PARALLEL

    @pytest.mark.unit
    def test_full_new_requires_every_component(self):
        flags = _flags(
            gtm_enabled=True,
            checkout_tracking=True,
            payment_tracking=True,
            thankyou_tracking=True
        )
        assert derive_phase(flags) is MigrationPhase.FULL_NEW

    @pytest.mark.unit
    def test_disabling_one_component_moves_full_new_to_partial_new(self):
        flags = _flags(
            gtm_enabled=True,
            checkout_tracking=True,
            payment_tracking=True,
            thankyou_tracking=True
        )
        assert derive_phase(flags.replace(FlagName.PAYMENT_TRACKING, False)) is MigrationPhase.PARTIAL_NEW

    @pytest.mark.unit
    def test_partial_new_with_no_components(self):
        assert derive_phase(_flags(gtm_enabled=True)) is MigrationPhase.PARTIAL_NEW

    @pytest.mark.unit
    def test_every_flag_combination_yields_exactly_one_phase(self):
        flags = list(FlagName)
        for combination in itertools.product((False, True), repeat=len(flags)):
            snapshot = FlagSet(dict(zip(flags, combination)))
            phase = derive_phase(snapshot)
            values = dict(zip(flags, combination))

            if values[FlagName.EMERGENCY_ROLLBACK_ENABLED]:
                expected = MigrationPhase.ROLLBACK
            elif not values[FlagName.GTM_ENABLED]:
                expected = MigrationPhase.LEGACY
            elif values[FlagName.PARALLEL_TRACKING]:
                expected = MigrationPhase.PARALLEL
            elif all(values[flag] for flag in COMPONENT_FLAGS):
                expected = MigrationPhase.FULL_NEW
            else:
                expected = MigrationPhase.PARTIAL_NEW
            assert phase is expected

    @pytest.mark.unit
    def test_inactive_phases(self):
        assert INACTIVE_PHASES == {MigrationPhase.ROLLBACK, MigrationPhase.LEGACY}

    @pytest.mark.unit
    def test_phase_values(self):
        assert [phase.value for phase in MigrationPhase] == [
            'rollback', 'legacy', 'parallel', 'partial_new', 'full_new'
        ]
