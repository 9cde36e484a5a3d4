"""Configuration package."""

from smartsplit.config.settings import (
    AppSettings,
    CashflowSettings,
    LedgerSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CashflowSettings",
    "LedgerSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
