"""
Configuration Management for SmartSplit

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunable thresholds live here.
The engine itself is pure, but the tolerances, dead-zones and cashflow
runway bands are product decisions, so they are configurable and
validated at startup instead of being scattered as literals.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Peer-group ledger configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMARTSPLIT_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency used when an expense does not name one"
    )
    split_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Tolerance when checking exact amounts and percentages"
    )
    settlement_dead_zone: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Balances within this distance of zero are treated as settled"
    )
    max_expense_amount: Decimal = Field(
        default=Decimal("1000000"),
        gt=0,
        description="Expenses above this amount are flagged for review"
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class CashflowSettings(BaseSettings):
    """
    Multi-entity cashflow allocation configuration.

    Runway bands are expressed in months.
    """

    model_config = SettingsConfigDict(
        env_prefix="CASHFLOW_",
        extra="ignore"
    )

    runway_sentinel: Decimal = Field(
        default=Decimal("999"),
        gt=0,
        description="Runway reported for entities with zero burn"
    )
    critical_runway_months: Decimal = Field(
        default=Decimal("3"),
        gt=0,
        description="Below this runway an entity is critical"
    )
    warning_runway_months: Decimal = Field(
        default=Decimal("6"),
        gt=0,
        description="Below this runway an entity is in warning"
    )

    # maximize_runway
    rescue_target_months: Decimal = Field(
        default=Decimal("6"),
        gt=0,
        description="Runway a critical entity is topped up to"
    )
    donor_runway_months: Decimal = Field(
        default=Decimal("12"),
        gt=0,
        description="Entities above this runway may donate"
    )
    donor_reserve_months: Decimal = Field(
        default=Decimal("9"),
        ge=0,
        description="Runway a donor always keeps"
    )

    # balanced
    balanced_target_months: Decimal = Field(
        default=Decimal("3"),
        gt=0,
        description="Runway the balanced rescue pass brings critical entities to"
    )
    balanced_donor_runway_months: Decimal = Field(
        default=Decimal("9"),
        gt=0,
        description="Entities above this runway may donate in the balanced pass"
    )

    # constraint defaults
    default_min_cash_per_entity: Decimal = Field(
        default=Decimal("50000"),
        ge=0,
        description="Cash every entity must retain"
    )
    default_min_transfer_amount: Decimal = Field(
        default=Decimal("10000"),
        ge=0,
        description="Transfers smaller than this are not worth executing"
    )

    high_risk_variance_months: Decimal = Field(
        default=Decimal("6"),
        ge=0,
        description="Runway spread above which the fleet is high risk"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def cashflow(self) -> CashflowSettings:
        return CashflowSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "cashflow", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
