"""
Unit tests for layered flag resolution (override store > environment > default).
"""

import pytest

from migration_flags.rollout.flags import DEFAULT_FLAG_VALUES, FlagName
from migration_flags.rollout.resolver import (
    FlagResolver,
    format_flag_value,
    override_key,
    parse_flag_value,
)
from migration_flags.storage.memory import InMemoryOverrideStore


class TestParseFlagValue:

    @pytest.mark.unit
    @pytest.mark.parametrize('raw,expected', [
        ("true", True),
        ("false", False),
        ("TRUE", True),
        (" False ", False),
        ("1", None),
        ("yes", None),
        ("", None),
        (None, None),
        (True, None),
    ])
    def test_tokens(self, raw, expected):
        assert parse_flag_value(raw) is expected

    @pytest.mark.unit
    def test_format_round_trips_through_parse(self):
        assert parse_flag_value(format_flag_value(True)) is True
        assert parse_flag_value(format_flag_value(False)) is False

    @pytest.mark.unit
    def test_override_key(self):
        assert override_key(FlagName.GTM_ENABLED) == "override_gtm_enabled"
        assert override_key('payment_tracking') == "override_payment_tracking"


class TestFlagResolver:

    @pytest.mark.unit
    def test_env_key(self):
        resolver = FlagResolver(None, environ={})
        assert resolver.env_key(FlagName.GTM_ENABLED) == "MIGRATION_FLAG_GTM_ENABLED"

        custom = FlagResolver(None, environ={}, env_prefix="REACT_APP_MIGRATION_")
        assert custom.env_key('checkout_tracking') == "REACT_APP_MIGRATION_CHECKOUT_TRACKING"

    @pytest.mark.unit
    def test_default_when_no_source_has_a_value(self):
        resolver = FlagResolver(InMemoryOverrideStore(), environ={})
        assert resolver.resolve(FlagName.GTM_ENABLED, False) is False
        assert resolver.resolve(FlagName.PARALLEL_TRACKING, True) is True

    @pytest.mark.unit
    def test_environment_beats_default(self):
        resolver = FlagResolver(
            InMemoryOverrideStore(),
            environ={"MIGRATION_FLAG_GTM_ENABLED": "true"}
        )
        assert resolver.resolve(FlagName.GTM_ENABLED, False) is True

    @pytest.mark.unit
    def test_override_beats_environment(self):
        store = InMemoryOverrideStore({"override_gtm_enabled": "false"})
        resolver = FlagResolver(store, environ={"MIGRATION_FLAG_GTM_ENABLED": "true"})
        assert resolver.resolve(FlagName.GTM_ENABLED, True) is False

    @pytest.mark.unit
    def test_malformed_override_falls_through_to_environment(self):
        store = InMemoryOverrideStore({"override_gtm_enabled": "enabled"})
        resolver = FlagResolver(store, environ={"MIGRATION_FLAG_GTM_ENABLED": "true"})
        assert resolver.resolve(FlagName.GTM_ENABLED, False) is True

    @pytest.mark.unit
    def test_malformed_environment_falls_through_to_default(self):
        resolver = FlagResolver(None, environ={"MIGRATION_FLAG_PARALLEL_TRACKING": "0"})
        assert resolver.resolve(FlagName.PARALLEL_TRACKING, True) is True

    @pytest.mark.unit
    def test_unreachable_override_store_falls_through(self, failing_override_store):
        errors = []
        resolver = FlagResolver(
            failing_override_store,
            environ={"MIGRATION_FLAG_GTM_ENABLED": "true"},
            on_source_error=lambda operation, error: errors.append((operation, error))
        )

        assert resolver.resolve(FlagName.GTM_ENABLED, False) is True
        assert len(errors) == 1
        assert errors[0][0] == 'get'
        assert isinstance(errors[0][1], ConnectionError)

    @pytest.mark.unit
    def test_resolve_all_produces_complete_flag_set(self):
        store = InMemoryOverrideStore({"override_checkout_tracking": "true"})
        resolver = FlagResolver(store, environ={"MIGRATION_FLAG_GTM_ENABLED": "true"})

        flags = resolver.resolve_all(DEFAULT_FLAG_VALUES)

        assert len(flags) == len(FlagName)
        assert flags[FlagName.GTM_ENABLED] is True
        assert flags[FlagName.CHECKOUT_TRACKING] is True
        assert flags[FlagName.PARALLEL_TRACKING] is True
        assert flags[FlagName.PAYMENT_TRACKING] is False

    @pytest.mark.unit
    def test_resolve_all_defaults_missing_entries_to_false(self):
        flags = FlagResolver(None, environ={}).resolve_all({})
        assert not any(flags.values())

    @pytest.mark.unit
    def test_resolve_all_survives_store_outage(self, failing_override_store):
        flags = FlagResolver(failing_override_store, environ={}).resolve_all(DEFAULT_FLAG_VALUES)
        assert flags.to_dict() == {flag.value: value for flag, value in DEFAULT_FLAG_VALUES.items()}
        assert failing_override_store.calls == len(FlagName)
