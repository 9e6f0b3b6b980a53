"""Configuration package."""

from finance_engine.config.settings import (
    CurrencySettings,
    DEFAULT_EXCHANGE_RATES,
    EngineSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "CurrencySettings",
    "DEFAULT_EXCHANGE_RATES",
    "EngineSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
