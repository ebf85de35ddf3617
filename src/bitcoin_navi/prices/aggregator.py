"""Price aggregation facade: one entry point over crypto and equity sources."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, time, timezone

from bitcoin_navi.core.models import Asset, AssetType
from bitcoin_navi.prices.fx import CurrencyNormalizer
from bitcoin_navi.prices.models import (
    AssetHistoryPoint,
    AssetPrice,
    AssetRef,
    SymbolPrice,
)
from bitcoin_navi.prices.provider import CryptoQuoteSource, EquityQuoteSource
from bitcoin_navi.prices.recorder import PriceHistoryRecorder

logger = logging.getLogger(__name__)


class PriceAggregator:
    """Dispatches quotes by asset class and returns canonical records.

    Crypto quotes pass through untouched (the provider already returns JPY).
    Equity quotes are USD-only; the aggregator fetches one USD→JPY rate per
    call and applies it to the quote or to every point of a history.

    No retries happen here: a provider failure propagates as raised. Only
    the batch methods absorb per-item failures.

    Parameters
    ----------
    crypto : CryptoQuoteSource
        CoinGecko client or any compatible source.
    equity : EquityQuoteSource
        Alpha Vantage client (which owns the rate-limit gate).
    normalizer : CurrencyNormalizer | None
        USD→JPY conversion. Defaults to the fixed-rate normalizer.
    recorder : PriceHistoryRecorder | None
        If set, ``quote_asset``/``quote_assets`` schedule a history write
        after each successful fetch.
    """

    def __init__(
        self,
        crypto: CryptoQuoteSource,
        equity: EquityQuoteSource,
        normalizer: CurrencyNormalizer | None = None,
        recorder: PriceHistoryRecorder | None = None,
    ) -> None:
        self._crypto = crypto
        self._equity = equity
        self._normalizer = normalizer or CurrencyNormalizer()
        self._recorder = recorder

    @property
    def recorder(self) -> PriceHistoryRecorder | None:
        return self._recorder

    async def get_asset_price(self, symbol: str, asset_type: AssetType) -> AssetPrice:
        """Fetch the current price of one asset in USD and JPY.

        Raises:
            ConfigurationError, RateLimitExceeded, ProviderError,
            DataNotFoundError: Propagated from the provider client.
        """
        if AssetType(asset_type) == AssetType.CRYPTO:
            quote = await self._crypto.get_price(symbol)
            return AssetPrice(
                price_usd=quote.price_usd,
                price_jpy=quote.price_jpy,
                change_24h=quote.change_24h,
            )

        stock = await self._equity.get_price(symbol)
        rate = await self._normalizer.current_rate()
        return AssetPrice(
            price_usd=stock.price_usd,
            price_jpy=self._normalizer.usd_to_secondary(stock.price_usd, rate),
            change_24h=stock.change_percent,
        )

    async def get_asset_history(
        self,
        symbol: str,
        asset_type: AssetType,
        days: int = 7,
    ) -> list[AssetHistoryPoint]:
        """Fetch a normalized price history.

        Crypto points come oldest-first at provider granularity; stock points
        are daily closes newest-first. Stock histories are converted with a
        single rate fetched once for the whole series.
        """
        if AssetType(asset_type) == AssetType.CRYPTO:
            return await self._crypto.get_history(symbol, days)

        bars = await self._equity.get_history(symbol, days)
        rate = await self._normalizer.current_rate()
        return [
            AssetHistoryPoint(
                timestamp=datetime.combine(bar.date, time.min, tzinfo=timezone.utc),
                price_usd=bar.close,
                price_jpy=self._normalizer.usd_to_secondary(bar.close, rate),
                volume=bar.volume,
            )
            for bar in bars
        ]

    async def get_batch_prices(
        self, assets: Sequence[AssetRef | Asset]
    ) -> list[SymbolPrice | None]:
        """Fetch many prices concurrently; failed items become None.

        The result is index-aligned with ``assets``. Failures are logged,
        never raised.
        """
        return list(
            await asyncio.gather(*(self._fetch_symbol(a.symbol, a.type) for a in assets))
        )

    async def quote_asset(self, asset: Asset) -> AssetPrice:
        """Fetch a stored asset's price and schedule its history write."""
        price = await self.get_asset_price(asset.symbol, asset.type)
        if self._recorder is not None:
            self._recorder.record(asset, price)
        return price

    async def quote_assets(self, assets: Sequence[Asset]) -> list[AssetPrice | None]:
        """Concurrent ``quote_asset`` with per-item failure isolation."""
        return list(await asyncio.gather(*(self._quote_or_none(a) for a in assets)))

    async def _fetch_symbol(self, symbol: str, asset_type: AssetType) -> SymbolPrice | None:
        try:
            price = await self.get_asset_price(symbol, asset_type)
        except Exception as e:
            logger.error("Failed to fetch price for %s: %s", symbol, e)
            return None
        return SymbolPrice(symbol=symbol, **price.model_dump())

    async def _quote_or_none(self, asset: Asset) -> AssetPrice | None:
        try:
            return await self.quote_asset(asset)
        except Exception as e:
            logger.error("Failed to fetch price for %s: %s", asset.symbol, e)
            return None
