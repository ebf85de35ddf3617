"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bitcoin_navi.api.deps import AppState, api_key_middleware
from bitcoin_navi.api.routes import router
from bitcoin_navi.core.config import NaviConfig, load_config
from bitcoin_navi.core.exceptions import NaviError, RateLimitExceeded, RecordNotFoundError
from bitcoin_navi.prices.aggregator import PriceAggregator
from bitcoin_navi.prices.alpha_vantage import AlphaVantageClient
from bitcoin_navi.prices.coingecko import CoinGeckoClient
from bitcoin_navi.prices.fx import CurrencyNormalizer, fixed_rate_source
from bitcoin_navi.prices.ratelimit import SlidingWindowRateLimiter
from bitcoin_navi.prices.recorder import PriceHistoryRecorder
from bitcoin_navi.storage.store import StorageProtocol, create_store


async def build_app_state(
    config: NaviConfig, store: StorageProtocol | None = None
) -> AppState:
    """Wire store, provider clients, normalizer, recorder, and aggregator."""
    if store is None:
        store = await create_store(config.storage)
    coingecko = CoinGeckoClient(config.coingecko)
    alpha_vantage = AlphaVantageClient(config.alpha_vantage, SlidingWindowRateLimiter())
    recorder = PriceHistoryRecorder(store)
    aggregator = PriceAggregator(
        crypto=coingecko,
        equity=alpha_vantage,
        normalizer=CurrencyNormalizer(fixed_rate_source(config.fx.usd_jpy_rate)),
        recorder=recorder,
    )
    return AppState(
        config=config,
        store=store,
        coingecko=coingecko,
        alpha_vantage=alpha_vantage,
        recorder=recorder,
        aggregator=aggregator,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    app.state.app_state = await build_app_state(config)

    yield

    await app.state.app_state.close()


def create_app(config: NaviConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import bitcoin_navi

    app = FastAPI(
        title="bitcoin-navi API",
        description="Crypto and stock price monitoring",
        version=bitcoin_navi.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API key middleware (passes everything through when no key is configured)
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(NaviError)
    async def navi_exception_handler(request: Request, exc: NaviError):
        status = 404 if isinstance(exc, RecordNotFoundError) else 500
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.context.get("retry_after", 60))}
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "details": str(exc)},
            headers=headers,
        )

    return app
