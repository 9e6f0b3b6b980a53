"""
Currency Conversion

Converts amounts through a static rate table. Each rate is the value of
one unit of the currency expressed in base-currency units, so the base
currency always has rate 1.

DESIGN DECISION: Unknown currency codes are treated as rate 1 instead of
failing. Imported transactions occasionally carry codes the table does not
know about, and refusing them would block the whole import. The fallback is
logged so it can be spotted.
"""

from decimal import Decimal
from typing import Optional

import structlog

from finance_engine.config import get_settings
from finance_engine.utils.decimal_utils import coerce_decimal, round2

logger = structlog.get_logger()

_ONE = Decimal("1")


class CurrencyConverter:
    """Static-table currency converter."""

    def __init__(
        self,
        rates: Optional[dict[str, Decimal]] = None,
        base_currency: Optional[str] = None,
    ):
        """
        Args:
            rates: Currency code -> value in base units. Defaults to settings.
            base_currency: Reference currency. Defaults to settings.
        """
        if rates is None or base_currency is None:
            settings = get_settings().currency
            rates = settings.exchange_rates if rates is None else rates
            base_currency = settings.base_currency if base_currency is None else base_currency

        self._rates = {code.strip().upper(): coerce_decimal(rate) for code, rate in rates.items()}
        self._base = base_currency.strip().upper()

    @property
    def base_currency(self) -> str:
        return self._base

    @property
    def currencies(self) -> list[str]:
        return sorted(self._rates)

    def rate(self, currency: str) -> Decimal:
        code = (currency or "").strip().upper()
        rate = self._rates.get(code)
        if rate is None:
            logger.debug("unknown_currency_rate", currency=code, fallback=str(_ONE))
            return _ONE
        return rate

    def convert(self, amount, from_currency: str, to_currency: str) -> Decimal:
        """Convert amount and round to cents."""
        value = coerce_decimal(amount)
        if (from_currency or "").strip().upper() == (to_currency or "").strip().upper():
            return round2(value)
        return round2(value * self.rate(from_currency) / self.rate(to_currency))

    def to_base(self, amount, currency: str) -> Decimal:
        return self.convert(amount, currency, self._base)

    def from_base(self, amount, currency: str) -> Decimal:
        return self.convert(amount, self._base, currency)
