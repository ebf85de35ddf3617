"""Multi-source asset price aggregation.

Architecture
------------
Two heterogeneous providers sit behind one facade:

    caller → PriceAggregator ─┬─ CoinGeckoClient      (crypto, USD+JPY native)
                              └─ AlphaVantageClient   (stock, USD only)
                                   └─ SlidingWindowRateLimiter gate
                              → CurrencyNormalizer    (stock path only)
                              → AssetPrice
                              ⇢ PriceHistoryRecorder  (fire-and-forget write)

Key abstractions:

- ``AssetPrice``: canonical {price_usd, price_jpy, change_24h} record.
- ``CryptoQuoteSource`` / ``EquityQuoteSource``: provider protocols.
- ``RateSource``: injectable async USD→JPY rate accessor.
"""

from bitcoin_navi.prices.aggregator import PriceAggregator
from bitcoin_navi.prices.alpha_vantage import AlphaVantageClient
from bitcoin_navi.prices.coingecko import COIN_IDS, CoinGeckoClient, resolve_coin_id
from bitcoin_navi.prices.fx import CurrencyNormalizer, RateSource, fixed_rate_source
from bitcoin_navi.prices.models import (
    AssetHistoryPoint,
    AssetPrice,
    AssetRef,
    ChartPoint,
    CryptoQuote,
    StockHistoryBar,
    StockQuote,
    SymbolPrice,
)
from bitcoin_navi.prices.provider import CryptoQuoteSource, EquityQuoteSource
from bitcoin_navi.prices.ratelimit import SlidingWindowRateLimiter
from bitcoin_navi.prices.recorder import PriceHistoryRecorder

__all__ = [
    # Models
    "AssetHistoryPoint",
    "AssetPrice",
    "AssetRef",
    "ChartPoint",
    "CryptoQuote",
    "StockHistoryBar",
    "StockQuote",
    "SymbolPrice",
    # Protocols
    "CryptoQuoteSource",
    "EquityQuoteSource",
    "RateSource",
    # Providers
    "COIN_IDS",
    "CoinGeckoClient",
    "resolve_coin_id",
    "AlphaVantageClient",
    "SlidingWindowRateLimiter",
    # Normalization and aggregation
    "CurrencyNormalizer",
    "fixed_rate_source",
    "PriceAggregator",
    "PriceHistoryRecorder",
]
