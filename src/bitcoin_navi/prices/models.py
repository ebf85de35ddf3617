"""Price data models for the multi-source price aggregation layer."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

from bitcoin_navi.core.models import AssetType


class CryptoQuote(BaseModel):
    """A CoinGecko quote. Both currencies come natively from the provider."""

    model_config = ConfigDict(frozen=True)

    price_usd: Decimal
    price_jpy: Decimal
    change_24h: Decimal
    change_24h_jpy: Decimal | None = None


class StockQuote(BaseModel):
    """An Alpha Vantage quote, USD only."""

    model_config = ConfigDict(frozen=True)

    price_usd: Decimal
    change_percent: Decimal


class StockHistoryBar(BaseModel):
    """One day of an Alpha Vantage daily series."""

    model_config = ConfigDict(frozen=True)

    date: date
    close: Decimal
    volume: Decimal

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v


class ChartPoint(BaseModel):
    """A single (timestamp, price) sample in one currency."""

    model_config = ConfigDict(frozen=True)

    timestamp: int  # epoch milliseconds, as the provider reports it
    price: Decimal


class AssetPrice(BaseModel):
    """The canonical price record returned by the aggregator.

    ``price_usd`` and ``price_jpy`` always derive from the same quote.
    Constructed fresh per fetch and never mutated.
    """

    model_config = ConfigDict(frozen=True)

    price_usd: Decimal
    price_jpy: Decimal
    change_24h: Decimal


class SymbolPrice(AssetPrice):
    """An AssetPrice tagged with the symbol it was fetched for."""

    symbol: str


class AssetRef(BaseModel):
    """A (symbol, type) pair identifying what to quote."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    type: AssetType


class AssetHistoryPoint(BaseModel):
    """One point of a normalized price history."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    price_usd: Decimal
    price_jpy: Decimal
    volume: Decimal | None = None
