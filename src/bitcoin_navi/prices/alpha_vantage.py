"""Alpha Vantage equity quote client.

Free-tier quota is 5 requests per minute (25 per day). Every call passes
through a sliding-window limiter first; a denied gate fails fast with
``RateLimitExceeded`` and no request is sent.

Alpha Vantage answers both an unknown symbol and a throttled request with
HTTP 200 and a body lacking the expected field. The client raises
``DataNotFoundError`` in both cases and records what the body hints at in
``context["reason"]``:

- ``"throttled"``: body carries a ``Note`` or ``Information`` message
- ``"invalid_symbol"``: body carries an ``Error Message``
- ``"unknown"``: neither (e.g. an empty ``Global Quote`` object)
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from bitcoin_navi.core.config import AlphaVantageConfig
from bitcoin_navi.core.exceptions import (
    ConfigurationError,
    DataNotFoundError,
    RateLimitExceeded,
)
from bitcoin_navi.prices.http import QuoteHttpClient
from bitcoin_navi.prices.models import StockHistoryBar, StockQuote
from bitcoin_navi.prices.ratelimit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

_QUOTE_KEY = "Global Quote"
_SERIES_KEY = "Time Series (Daily)"
_THROTTLE_KEYS = ("Note", "Information")
_ERROR_KEY = "Error Message"


class AlphaVantageClient(QuoteHttpClient):
    """Rate-limited async client for Alpha Vantage quotes and daily series.

    Parameters
    ----------
    config : AlphaVantageConfig
        Credentials, endpoint, timeout and the limiter policy.
    limiter : SlidingWindowRateLimiter
        The limiter shared by every caller of this provider.
    client : httpx.AsyncClient | None
        Optional pre-built HTTP client (borrowed, not closed).
    """

    provider = "alpha_vantage"

    def __init__(
        self,
        config: AlphaVantageConfig,
        limiter: SlidingWindowRateLimiter,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(config.request_timeout, client=client)
        self._config = config
        self._limiter = limiter

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return self._limiter

    async def get_price(self, symbol: str) -> StockQuote:
        """Fetch the latest quote (USD price, percent change) for ``symbol``.

        Raises:
            ConfigurationError: No API key configured.
            RateLimitExceeded: Local quota exhausted; no request sent.
            ProviderError: Non-2xx response or transport failure.
            DataNotFoundError: Quote missing (unknown symbol or throttled).
        """
        data = await self._query("GLOBAL_QUOTE", symbol)

        quote = data.get(_QUOTE_KEY) or {}
        price = quote.get("05. price")
        if not price:
            raise self._not_found(symbol, data, "quote")

        change = str(quote.get("10. change percent") or "0").strip().rstrip("%")
        return self._record(
            StockQuote,
            symbol,
            price_usd=_to_decimal(price, "05. price", symbol),
            change_percent=_to_decimal(change, "10. change percent", symbol),
        )

    async def get_history(self, symbol: str, days: int = 30) -> list[StockHistoryBar]:
        """Fetch daily closes and volumes, newest first, at most ``days`` bars."""
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")

        data = await self._query("TIME_SERIES_DAILY", symbol)

        series = data.get(_SERIES_KEY)
        if not series:
            raise self._not_found(symbol, data, "time series")

        bars = [
            self._record(
                StockHistoryBar,
                symbol,
                date=day,
                close=_to_decimal(values.get("4. close"), "4. close", symbol),
                volume=_to_decimal(values.get("5. volume"), "5. volume", symbol),
            )
            for day, values in series.items()
        ]
        bars.sort(key=lambda b: b.date, reverse=True)
        return bars[:days]

    # --- Internals ---

    async def _query(self, function: str, symbol: str) -> dict[str, Any]:
        api_key = self._config.api_key
        if not api_key:
            raise ConfigurationError(
                "Alpha Vantage API key is not configured "
                "(set ALPHA_VANTAGE_API_KEY or BITCOIN_NAVI_ALPHA_VANTAGE__API_KEY)",
                context={"field": "alpha_vantage.api_key", "value": None},
            )

        self._acquire(symbol)

        data = await self._get_json(
            self._config.base_url,
            {"function": function, "symbol": symbol, "apikey": api_key},
            symbol,
        )
        return data if isinstance(data, dict) else {}

    def _acquire(self, symbol: str) -> None:
        """Pass the sliding-window gate or raise without touching the network."""
        max_requests = self._config.max_requests
        window_ms = self._config.window_ms
        if self._limiter.can_make_request(max_requests, window_ms):
            return

        wait_ms = self._limiter.get_wait_time(max_requests, window_ms)
        retry_after = math.ceil(wait_ms / 1000)
        logger.warning(
            "Alpha Vantage local rate limit hit for %s, %d ms until next slot",
            symbol, wait_ms,
        )
        raise RateLimitExceeded(
            f"Alpha Vantage rate limit exceeded. Please wait {retry_after} seconds.",
            context={
                "provider": self.provider,
                "symbol": symbol,
                "wait_ms": wait_ms,
                "retry_after": retry_after,
            },
        )

    def _not_found(self, symbol: str, data: dict[str, Any], what: str) -> DataNotFoundError:
        if any(key in data for key in _THROTTLE_KEYS):
            reason = "throttled"
        elif _ERROR_KEY in data:
            reason = "invalid_symbol"
        else:
            reason = "unknown"

        logger.info("Alpha Vantage returned no %s for %s (reason=%s)", what, symbol, reason)
        return DataNotFoundError(
            f"No {what} data found for symbol: {symbol}. "
            "This may be due to rate limiting or an invalid symbol.",
            context={"provider": self.provider, "symbol": symbol, "reason": reason},
        )


def _to_decimal(value: Any, field: str, symbol: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise DataNotFoundError(
            f"Malformed {field!r} value for {symbol}: {value!r}",
            context={"provider": "alpha_vantage", "symbol": symbol, "reason": "malformed"},
        ) from e
