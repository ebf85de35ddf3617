"""Quote adapter protocols — the source-agnostic interface layer.

Architecture
------------
The aggregator never talks to a provider directly; it depends on two
protocols, one per asset class:

    PriceAggregator → CryptoQuoteSource  → CoinGecko
                    → EquityQuoteSource  → Alpha Vantage (rate-limited)

The two shapes differ on purpose. Crypto quotes arrive with both
currencies from the provider, equity quotes arrive in USD only and are
normalized by the aggregator. Swapping a provider means writing one class
that satisfies the matching protocol.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from bitcoin_navi.prices.models import (
    AssetHistoryPoint,
    CryptoQuote,
    StockHistoryBar,
    StockQuote,
)


@runtime_checkable
class CryptoQuoteSource(Protocol):
    """A provider that returns dual-currency crypto quotes."""

    async def get_price(self, symbol: str) -> CryptoQuote:
        """Fetch the current USD and JPY price plus 24h change."""
        ...

    async def get_history(self, symbol: str, days: int) -> list[AssetHistoryPoint]:
        """Fetch a USD series with JPY derived at a fixed rate."""
        ...


@runtime_checkable
class EquityQuoteSource(Protocol):
    """A provider that returns USD-only equity quotes."""

    async def get_price(self, symbol: str) -> StockQuote:
        """Fetch the current USD price and percent change."""
        ...

    async def get_history(self, symbol: str, days: int) -> list[StockHistoryBar]:
        """Fetch daily bars sorted newest-first, at most ``days`` entries."""
        ...
