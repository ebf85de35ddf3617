"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from bitcoin_navi.core.config import NaviConfig
from bitcoin_navi.prices.aggregator import PriceAggregator
from bitcoin_navi.prices.alpha_vantage import AlphaVantageClient
from bitcoin_navi.prices.coingecko import CoinGeckoClient
from bitcoin_navi.prices.recorder import PriceHistoryRecorder
from bitcoin_navi.storage.store import StorageProtocol


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: NaviConfig
    store: StorageProtocol
    coingecko: CoinGeckoClient
    alpha_vantage: AlphaVantageClient
    recorder: PriceHistoryRecorder
    aggregator: PriceAggregator

    async def close(self) -> None:
        """Flush pending history writes, then release clients and store."""
        await self.recorder.drain()
        await self.coingecko.close()
        await self.alpha_vantage.close()
        await self.store.close()


def get_config(request: Request) -> NaviConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> StorageProtocol:
    """Dependency: retrieve storage backend."""
    return request.app.state.app_state.store


def get_aggregator(request: Request) -> PriceAggregator:
    """Dependency: retrieve the price aggregation facade."""
    return request.app.state.app_state.aggregator


def get_coingecko(request: Request) -> CoinGeckoClient:
    return request.app.state.app_state.coingecko


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "details": "Invalid or missing API key"},
            )
    return await call_next(request)
