"""USD → JPY currency normalization with a pluggable rate source."""

from __future__ import annotations

from decimal import Decimal
from typing import Awaitable, Callable

RateSource = Callable[[], Awaitable[Decimal]]

DEFAULT_USD_JPY_RATE = Decimal("150")


def fixed_rate_source(rate: Decimal = DEFAULT_USD_JPY_RATE) -> RateSource:
    """A rate source that always returns ``rate``.

    Placeholder until a live FX feed is wired in; anything matching
    ``RateSource`` can replace it without touching the aggregator.
    """
    if rate <= 0:
        raise ValueError(f"rate must be > 0, got {rate}")

    async def _source() -> Decimal:
        return rate

    return _source


class CurrencyNormalizer:
    """Converts USD amounts into the secondary currency (JPY)."""

    def __init__(self, rate_source: RateSource | None = None) -> None:
        self._rate_source = rate_source or fixed_rate_source()

    async def current_rate(self) -> Decimal:
        """Fetch the USD→JPY rate from the configured source."""
        return Decimal(await self._rate_source())

    @staticmethod
    def usd_to_secondary(amount_usd: Decimal, rate: Decimal) -> Decimal:
        return amount_usd * rate
