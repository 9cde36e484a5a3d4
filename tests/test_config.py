"""Tests for environment-driven configuration."""

import pytest
from decimal import Decimal

from smartsplit.config import (
    AppSettings,
    CashflowSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)
from smartsplit.engine.settlement import optimize


class TestSettings:
    """Tests for settings defaults and overrides."""

    def test_ledger_defaults(self):
        """Test ledger defaults."""
        settings = LedgerSettings()
        assert settings.default_currency == "USD"
        assert settings.split_tolerance == Decimal("0.01")
        assert settings.settlement_dead_zone == Decimal("0.01")

    def test_cashflow_defaults(self):
        """Test cashflow runway bands."""
        settings = CashflowSettings()
        assert settings.runway_sentinel == Decimal("999")
        assert settings.critical_runway_months == Decimal("3")
        assert settings.donor_runway_months == Decimal("12")
        assert settings.balanced_donor_runway_months == Decimal("9")

    def test_env_override(self, monkeypatch):
        """Test prefixed environment variables override defaults."""
        monkeypatch.setenv("SMARTSPLIT_DEFAULT_CURRENCY", "eur")
        monkeypatch.setenv("CASHFLOW_CRITICAL_RUNWAY_MONTHS", "4")
        assert get_settings().ledger.default_currency == "EUR"
        assert get_settings().cashflow.critical_runway_months == Decimal("4")

    def test_dead_zone_from_env(self, monkeypatch):
        """Test the optimizer reads its dead zone from settings."""
        monkeypatch.setenv("SMARTSPLIT_SETTLEMENT_DEAD_ZONE", "5")
        assert optimize({"a": Decimal("4"), "b": Decimal("-4")}) == []

    def test_invalid_log_level(self):
        """Test unsupported log levels are rejected."""
        with pytest.raises(ValueError, match="Unsupported log level"):
            AppSettings(log_level="LOUD")

    def test_validate_all_settings(self):
        """Test the startup check reports every section."""
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["cashflow"] is True
        assert results["app"] is True

    def test_validate_all_settings_reports_errors(self, monkeypatch):
        """Test a broken section is reported, not raised."""
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        results = validate_all_settings()
        assert results["app"] is False
        assert "app_error" in results


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
