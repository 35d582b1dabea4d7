"""
Tests for SettingsService.

The cache expires against the injected DeterministicClock, so every
staleness boundary is exact.
"""

from decimal import Decimal

import pytest

from agency_config.schema import EngineSettings
from agency_kernel.exceptions import InvalidSettingsError
from agency_services.settings_service import SettingsService


class TestCaching:

    def test_second_read_is_cached(self, settings_service, store):
        settings_service.get()
        settings_service.get()
        assert store.calls["get_settings"] == 1

    def test_reload_at_ttl(self, settings_service, store, deterministic_clock):
        settings_service.get()
        deterministic_clock.advance(299)
        settings_service.get()
        assert store.calls["get_settings"] == 1

        deterministic_clock.advance(1)
        settings_service.get()
        assert store.calls["get_settings"] == 2

    def test_invalidate_forces_reload(self, settings_service, store):
        settings_service.get()
        store.settings = {"of_fee_pct": "0.25"}
        assert settings_service.get().of_fee_pct == Decimal("0.2")

        settings_service.invalidate()
        assert settings_service.get().of_fee_pct == Decimal("0.25")
        assert store.calls["get_settings"] == 2

    def test_zero_ttl_disables_cache(self, store, deterministic_clock):
        service = SettingsService(store, deterministic_clock, defaults=EngineSettings(), ttl_seconds=0)
        service.get()
        service.get()
        assert store.calls["get_settings"] == 2

    def test_custom_ttl(self, store, deterministic_clock):
        service = SettingsService(store, deterministic_clock, defaults=EngineSettings(), ttl_seconds=10)
        service.get()
        deterministic_clock.advance(10)
        service.get()
        assert store.calls["get_settings"] == 2


class TestStoredOverrides:

    def test_store_values_override_defaults(self, settings_service, store):
        store.settings = {"default_fx_rate": "0.85", "green_threshold": "0.4"}
        settings = settings_service.get()
        assert settings.default_fx_rate == Decimal("0.85")
        assert settings.green_threshold == Decimal("0.4")
        assert settings.of_fee_pct == Decimal("0.2")

    def test_unknown_keys_ignored(self, settings_service, store):
        store.settings = {"theme": "dark"}
        assert settings_service.get() == EngineSettings()

    def test_invalid_value_raises_then_recovers(self, settings_service, store):
        store.settings = {"of_fee_pct": "lots"}
        with pytest.raises(InvalidSettingsError):
            settings_service.get()

        store.settings = {"of_fee_pct": "0.3"}
        assert settings_service.get().of_fee_pct == Decimal("0.3")

    def test_pnl_settings(self, settings_service, store):
        store.settings = {"of_fee_pct": "0.25", "yellow_threshold_low": "0.1"}
        pnl = settings_service.pnl_settings()
        assert pnl.of_fee_pct == Decimal("0.25")
        assert pnl.yellow_threshold_low == Decimal("0.1")
        assert pnl.green_threshold == EngineSettings().green_threshold

    def test_packaged_defaults_when_none_given(self, store, deterministic_clock):
        service = SettingsService(store, deterministic_clock)
        assert service.defaults == EngineSettings()
