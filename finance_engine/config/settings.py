"""
Configuration Management for the Finance Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The exchange-rate table is static configuration, not a live feed.
Changing it requires a restart (and a cache clear in tests).
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_EXCHANGE_RATES: dict[str, Decimal] = {
    "MVR": Decimal("1"),
    "USD": Decimal("15.42"),
    "EUR": Decimal("16.32"),
    "GBP": Decimal("18.55"),
    "LKR": Decimal("0.049"),
}


class CurrencySettings(BaseSettings):
    """Static currency table configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_currency: str = Field(
        default="MVR",
        min_length=3,
        max_length=3,
        description="Reference currency all aggregates are converted through"
    )
    exchange_rates: dict[str, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES),
        description="Value of one unit of each currency in base units (JSON in env)"
    )

    @field_validator('base_currency')
    @classmethod
    def upper_base_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator('exchange_rates')
    @classmethod
    def validate_rates(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Rates are keyed by upper-case code and must be positive."""
        normalized = {}
        for code, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {code} must be positive")
            normalized[code.strip().upper()] = rate
        return normalized

    @model_validator(mode='after')
    def base_rate_is_one(self) -> 'CurrencySettings':
        """The base currency is always worth exactly one base unit."""
        rate = self.exchange_rates.get(self.base_currency)
        if rate is not None and rate != Decimal("1"):
            raise ValueError(
                f"Base currency {self.base_currency} must have rate 1, got {rate}"
            )
        return self


class EngineSettings(BaseSettings):
    """Tolerances and defaults for the computation engine."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    settlement_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum |sum(shares) - total| accepted for custom bill splits, and the largest remainder a debtor may leave and still count as settled"
    )
    default_forecast_horizon_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Horizon used when a forecast is requested without one"
    )
    max_forecast_horizon_days: int = Field(
        default=366,
        ge=1,
        description="Upper bound on forecast horizons"
    )
    max_recurrence_occurrences: int = Field(
        default=1000,
        ge=1,
        description="Safety cap when expanding a recurrence into dates"
    )
    self_contact_id: str = Field(
        default="self",
        description="Contact id that represents the current user"
    )
    default_credit_limit: Decimal = Field(
        default=Decimal("5000"),
        ge=0,
        description="Credit limit assumed when a card has none configured"
    )


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render logs as JSON (False renders for the console)"
    )

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {allowed}")
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
    def currency(self) -> CurrencySettings:
        return CurrencySettings()

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an
    additional "<name>_error" entry for each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("currency", "engine", "logging"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
