"""FastAPI route definitions for the bitcoin-navi API."""

from __future__ import annotations

import asyncio
from datetime import UTC as _UTC, datetime

from fastapi import APIRouter, Depends, Query, Response

import bitcoin_navi
from bitcoin_navi.api.deps import get_aggregator, get_coingecko, get_config, get_store
from bitcoin_navi.api.schemas import (
    AlertListResponse,
    AlertResponse,
    AssetListResponse,
    AssetResponse,
    BitcoinCurrentPrice,
    BitcoinPriceResponse,
    ChartPointResponse,
    EmptyPriceListResponse,
    HealthResponse,
    HistoryPointResponse,
    HistoryResponse,
    PriceHistoryListResponse,
    PriceHistoryResponse,
    PriceListResponse,
    PriceResponse,
)
from bitcoin_navi.core.exceptions import RecordNotFoundError
from bitcoin_navi.core.models import AlertCreate, AlertUpdate, Asset, AssetCreate
from bitcoin_navi.prices.aggregator import PriceAggregator
from bitcoin_navi.prices.coingecko import CoinGeckoClient
from bitcoin_navi.prices.models import AssetPrice
from bitcoin_navi.storage.store import StorageProtocol

router = APIRouter()

BITCOIN_CHART_DAYS = 7


def _price_response(asset: Asset, price: AssetPrice) -> PriceResponse:
    return PriceResponse(
        symbol=asset.symbol,
        name=asset.name,
        type=asset.type,
        price_usd=price.price_usd,
        price_jpy=price.price_jpy,
        change_24h=price.change_24h,
        timestamp=datetime.now(_UTC),
    )


async def _require_asset_by_symbol(store: StorageProtocol, symbol: str) -> Asset:
    asset = await store.get_asset_by_symbol(symbol)
    if asset is None:
        raise RecordNotFoundError(
            f"Asset not found: {symbol}",
            context={"table": "assets", "symbol": symbol},
        )
    return asset


async def _require_asset(store: StorageProtocol, asset_id: str) -> Asset:
    asset = await store.get_asset_by_id(asset_id)
    if asset is None:
        raise RecordNotFoundError(
            f"Asset with id {asset_id} not found",
            context={"table": "assets", "id": asset_id},
        )
    return asset


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: StorageProtocol = Depends(get_store),
    config=Depends(get_config),
):
    """System health and basic statistics."""
    healthy = await store.health_check()
    assets = await store.get_assets()
    alerts = await store.get_alerts()
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=bitcoin_navi.__version__,
        storage_backend=str(config.storage.backend.value),
        total_assets=len(assets),
        total_alerts=len(alerts),
    )


# -- Prices --


@router.get("/prices", response_model=PriceListResponse | EmptyPriceListResponse)
async def list_prices(
    store: StorageProtocol = Depends(get_store),
    aggregator: PriceAggregator = Depends(get_aggregator),
):
    """Current prices for every stored asset, fetched concurrently."""
    assets = await store.get_assets()
    if not assets:
        return EmptyPriceListResponse()

    results = await aggregator.quote_assets(assets)
    prices = [
        _price_response(asset, price)
        for asset, price in zip(assets, results)
        if price is not None
    ]
    return PriceListResponse(
        total=len(assets),
        fetched=len(prices),
        failed=len(assets) - len(prices),
        prices=prices,
        timestamp=datetime.now(_UTC),
    )


@router.get("/prices/bitcoin", response_model=BitcoinPriceResponse)
async def bitcoin_price(coingecko: CoinGeckoClient = Depends(get_coingecko)):
    """Bitcoin quote in USD/JPY plus a 7-day JPY chart."""
    quote, chart = await asyncio.gather(
        coingecko.get_price("BTC"),
        coingecko.get_market_chart("BTC", BITCOIN_CHART_DAYS, vs_currency="jpy"),
    )
    return BitcoinPriceResponse(
        currentPrice=BitcoinCurrentPrice(
            usd=quote.price_usd,
            usd_24h_change=quote.change_24h,
            jpy=quote.price_jpy,
            jpy_24h_change=quote.change_24h_jpy,
        ),
        chartData=[
            ChartPointResponse(timestamp=p.timestamp, price=p.price) for p in chart
        ],
    )


@router.get("/prices/{symbol}", response_model=PriceResponse)
async def get_price(
    symbol: str,
    store: StorageProtocol = Depends(get_store),
    aggregator: PriceAggregator = Depends(get_aggregator),
):
    """Live price of one stored asset. The history write does not delay the response."""
    asset = await _require_asset_by_symbol(store, symbol)
    price = await aggregator.quote_asset(asset)
    return _price_response(asset, price)


@router.get("/history/{symbol}", response_model=HistoryResponse)
async def get_history(
    symbol: str,
    days: int = Query(7, ge=1, le=365),
    store: StorageProtocol = Depends(get_store),
    aggregator: PriceAggregator = Depends(get_aggregator),
):
    """Provider price history for a stored asset, normalized to USD and JPY."""
    asset = await _require_asset_by_symbol(store, symbol)
    points = await aggregator.get_asset_history(asset.symbol, asset.type, days)
    return HistoryResponse(
        symbol=asset.symbol,
        type=asset.type,
        days=days,
        points=[HistoryPointResponse.model_validate(p.model_dump()) for p in points],
    )


# -- Assets --


@router.get("/assets", response_model=AssetListResponse)
async def list_assets(store: StorageProtocol = Depends(get_store)):
    assets = await store.get_assets()
    return AssetListResponse(
        total=len(assets),
        items=[AssetResponse.model_validate(a.model_dump()) for a in assets],
    )


@router.post("/assets", response_model=AssetResponse, status_code=201)
async def create_asset(body: AssetCreate, store: StorageProtocol = Depends(get_store)):
    asset = await store.create_asset(body)
    return AssetResponse.model_validate(asset.model_dump())


@router.get("/assets/{asset_id}", response_model=AssetResponse)
async def get_asset(asset_id: str, store: StorageProtocol = Depends(get_store)):
    asset = await _require_asset(store, asset_id)
    return AssetResponse.model_validate(asset.model_dump())


@router.delete("/assets/{asset_id}", status_code=204)
async def delete_asset(asset_id: str, store: StorageProtocol = Depends(get_store)):
    """Delete an asset together with its alerts and price history."""
    await store.delete_asset(asset_id)
    return Response(status_code=204)


@router.get("/assets/{asset_id}/history", response_model=PriceHistoryListResponse)
async def get_asset_history(
    asset_id: str,
    limit: int | None = Query(None, ge=1, le=1000),
    store: StorageProtocol = Depends(get_store),
):
    """Recorded price observations for an asset, newest first."""
    await _require_asset(store, asset_id)
    entries = await store.get_price_history(asset_id, limit=limit)
    return PriceHistoryListResponse(
        asset_id=asset_id,
        total=len(entries),
        items=[PriceHistoryResponse.model_validate(e.model_dump()) for e in entries],
    )


@router.get("/assets/{asset_id}/alerts", response_model=AlertListResponse)
async def get_asset_alerts(asset_id: str, store: StorageProtocol = Depends(get_store)):
    await _require_asset(store, asset_id)
    alerts = await store.get_alerts_by_asset_id(asset_id)
    return AlertListResponse(
        total=len(alerts),
        items=[AlertResponse.model_validate(a.model_dump()) for a in alerts],
    )


# -- Alerts --


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(store: StorageProtocol = Depends(get_store)):
    alerts = await store.get_alerts()
    return AlertListResponse(
        total=len(alerts),
        items=[AlertResponse.model_validate(a.model_dump()) for a in alerts],
    )


@router.post("/alerts", response_model=AlertResponse, status_code=201)
async def create_alert(body: AlertCreate, store: StorageProtocol = Depends(get_store)):
    alert = await store.create_alert(body)
    return AlertResponse.model_validate(alert.model_dump())


@router.patch("/alerts/{alert_id}", response_model=AlertResponse)
async def update_alert(
    alert_id: str, body: AlertUpdate, store: StorageProtocol = Depends(get_store)
):
    """Partially update an alert; omitted fields keep their values."""
    alert = await store.update_alert(alert_id, body)
    return AlertResponse.model_validate(alert.model_dump())


@router.delete("/alerts/{alert_id}", status_code=204)
async def delete_alert(alert_id: str, store: StorageProtocol = Depends(get_store)):
    await store.delete_alert(alert_id)
    return Response(status_code=204)
