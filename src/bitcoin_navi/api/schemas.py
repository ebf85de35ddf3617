"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from bitcoin_navi.core.models import AlertType, AssetType, Currency


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    details: str | None = None


# -- Prices --


class PriceResponse(BaseModel):
    """Current price of one stored asset."""

    symbol: str
    name: str
    type: AssetType
    price_usd: float
    price_jpy: float
    change_24h: float
    timestamp: datetime


class PriceListResponse(BaseModel):
    """Batch price result. Failed assets are omitted from ``prices``."""

    success: bool = True
    total: int
    fetched: int
    failed: int
    prices: list[PriceResponse]
    timestamp: datetime


class EmptyPriceListResponse(BaseModel):
    """Returned by the batch endpoint when no assets are registered."""

    message: str = "No assets found in database"
    prices: list[PriceResponse] = Field(default_factory=list)


class BitcoinCurrentPrice(BaseModel):
    usd: float
    usd_24h_change: float
    jpy: float
    jpy_24h_change: float | None = None


class ChartPointResponse(BaseModel):
    timestamp: int
    price: float


class BitcoinPriceResponse(BaseModel):
    """Bitcoin quote plus a 7-day JPY chart."""

    currentPrice: BitcoinCurrentPrice
    chartData: list[ChartPointResponse]


class HistoryPointResponse(BaseModel):
    timestamp: datetime
    price_usd: float
    price_jpy: float
    volume: float | None = None


class HistoryResponse(BaseModel):
    """Provider history for one stored asset."""

    symbol: str
    type: AssetType
    days: int
    points: list[HistoryPointResponse]


# -- Assets --


class AssetResponse(BaseModel):
    id: str
    symbol: str
    name: str
    type: AssetType
    created_at: datetime


class AssetListResponse(BaseModel):
    total: int
    items: list[AssetResponse]


class PriceHistoryResponse(BaseModel):
    """One persisted price observation."""

    id: str
    asset_id: str
    price_usd: float
    price_jpy: float
    volume: float | None = None
    timestamp: datetime


class PriceHistoryListResponse(BaseModel):
    asset_id: str
    total: int
    items: list[PriceHistoryResponse]


# -- Alerts --


class AlertResponse(BaseModel):
    id: str
    asset_id: str
    type: AlertType
    threshold: float
    currency: Currency
    is_active: bool
    is_triggered: bool
    triggered_at: datetime | None = None
    created_at: datetime


class AlertListResponse(BaseModel):
    total: int
    items: list[AlertResponse]


# -- Health --


class HealthResponse(BaseModel):
    """System health check response."""

    status: str
    version: str
    storage_backend: str
    total_assets: int
    total_alerts: int
