"""CoinGecko crypto quote client.

Resolves ticker symbols to CoinGecko coin ids and fetches USD + JPY quotes
in one call; the provider converts natively, so no exchange-rate step runs
on this path. History uses the ``market_chart`` endpoint in USD and derives
JPY at a fixed rate, since no historical FX source exists.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

import httpx

from bitcoin_navi.core.config import CoinGeckoConfig
from bitcoin_navi.core.exceptions import DataNotFoundError
from bitcoin_navi.prices.http import QuoteHttpClient
from bitcoin_navi.prices.models import AssetHistoryPoint, ChartPoint, CryptoQuote

logger = logging.getLogger(__name__)

_API_KEY_HEADER = "x-cg-demo-api-key"

# Ticker → CoinGecko coin id. Unlisted tickers fall back to the lowercased symbol.
COIN_IDS: dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "SOL": "solana",
    "DOT": "polkadot",
    "MATIC": "matic-network",
    "LINK": "chainlink",
}


def resolve_coin_id(symbol: str) -> str:
    """Map a ticker to its CoinGecko id (case-insensitive)."""
    symbol = symbol.strip()
    return COIN_IDS.get(symbol.upper(), symbol.lower())


class CoinGeckoClient(QuoteHttpClient):
    """Async client for the CoinGecko v3 API.

    Without an API key the client runs in CoinGecko's anonymous mode, which
    is more aggressively rate limited upstream but otherwise identical.
    Holds no cache; callers tolerate minutes of staleness upstream.
    """

    provider = "coingecko"

    def __init__(
        self,
        config: CoinGeckoConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {_API_KEY_HEADER: config.api_key} if config.api_key else {}
        super().__init__(config.request_timeout, headers=headers, client=client)
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        if not config.api_key:
            logger.warning("CoinGecko API key not set, using anonymous (rate-limited) mode")

    async def get_price(self, symbol: str) -> CryptoQuote:
        """Fetch current USD/JPY prices and 24h change for ``symbol``.

        Raises:
            ProviderError: Non-2xx response or transport failure.
            DataNotFoundError: The response has no entry for the coin id.
        """
        coin_id = resolve_coin_id(symbol)
        data = await self._get_json(
            f"{self._base_url}/simple/price",
            {
                "ids": coin_id,
                "vs_currencies": "usd,jpy",
                "include_24hr_change": "true",
            },
            symbol,
        )

        coin = data.get(coin_id) if isinstance(data, dict) else None
        if not isinstance(coin, dict) or not coin:
            raise DataNotFoundError(
                f"No price data found for {symbol} (coin id: {coin_id}). "
                "Check that the symbol mapping is correct.",
                context={
                    "provider": self.provider,
                    "symbol": symbol,
                    "coin_id": coin_id,
                    "reason": "unmapped_symbol",
                },
            )
        if coin.get("usd") is None or coin.get("jpy") is None:
            raise DataNotFoundError(
                f"CoinGecko returned no USD/JPY price for {symbol} (coin id: {coin_id})",
                context={
                    "provider": self.provider,
                    "symbol": symbol,
                    "coin_id": coin_id,
                    "reason": "malformed",
                },
            )

        return self._record(
            CryptoQuote,
            symbol,
            price_usd=coin["usd"],
            price_jpy=coin["jpy"],
            change_24h=coin.get("usd_24h_change") or Decimal(0),
            change_24h_jpy=coin.get("jpy_24h_change"),
        )

    async def get_market_chart(
        self, symbol: str, days: int, vs_currency: str = "usd"
    ) -> list[ChartPoint]:
        """Fetch the raw (timestamp, price) series for ``symbol``.

        Granularity is chosen by CoinGecko from ``days`` (5-minute points
        for 1 day, hourly up to 90 days, daily beyond).
        """
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")

        coin_id = resolve_coin_id(symbol)
        data = await self._get_json(
            f"{self._base_url}/coins/{coin_id}/market_chart",
            {"vs_currency": vs_currency, "days": str(days)},
            symbol,
        )

        prices = data.get("prices") if isinstance(data, dict) else None
        if prices is None:
            raise DataNotFoundError(
                f"No chart data found for {symbol} (coin id: {coin_id})",
                context={
                    "provider": self.provider,
                    "symbol": symbol,
                    "coin_id": coin_id,
                    "reason": "unknown",
                },
            )

        return [
            self._record(ChartPoint, symbol, timestamp=ts, price=price)
            for ts, price in prices
            if price is not None
        ]

    async def get_history(self, symbol: str, days: int) -> list[AssetHistoryPoint]:
        """USD history with JPY derived from the configured fixed rate.

        Every point uses ``history_fx_rate``; this path does not consult a
        live exchange-rate source.
        """
        rate = self._config.history_fx_rate
        chart = await self.get_market_chart(symbol, days, vs_currency="usd")
        return [
            AssetHistoryPoint(
                timestamp=datetime.fromtimestamp(point.timestamp / 1000, tz=timezone.utc),
                price_usd=point.price,
                price_jpy=point.price * rate,
            )
            for point in chart
        ]
