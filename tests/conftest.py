"""Shared pytest fixtures for bitcoin-navi."""

import pytest

from bitcoin_navi.core.config import (
    AlphaVantageConfig,
    APIConfig,
    CoinGeckoConfig,
    NaviConfig,
    StorageConfig,
)
from bitcoin_navi.core.models import AssetCreate, AssetType, StorageBackend
from bitcoin_navi.storage.store import SqliteStore

COINGECKO_URL = "https://api.coingecko.com/api/v3"
ALPHA_VANTAGE_URL = "https://www.alphavantage.co/query"


class FakeClock:
    """Manually advanced millisecond clock for the rate limiter."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep real provider keys in the developer's shell out of tests."""
    for name in ("COINGECKO_API_KEY", "ALPHA_VANTAGE_API_KEY", "BITCOIN_NAVI_CONFIG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coingecko_config() -> CoinGeckoConfig:
    return CoinGeckoConfig(api_key="cg-test-key", base_url=COINGECKO_URL)


@pytest.fixture
def alpha_vantage_config() -> AlphaVantageConfig:
    return AlphaVantageConfig(api_key="av-test-key", base_url=ALPHA_VANTAGE_URL)


@pytest.fixture
def navi_config(tmp_path) -> NaviConfig:
    return NaviConfig(
        coingecko=CoinGeckoConfig(api_key="cg-test-key", base_url=COINGECKO_URL),
        alpha_vantage=AlphaVantageConfig(api_key="av-test-key", base_url=ALPHA_VANTAGE_URL),
        storage=StorageConfig(
            backend=StorageBackend.SQLITE,
            sqlite_path=str(tmp_path / "test.db"),
        ),
        api=APIConfig(),
    )


@pytest.fixture
async def store():
    """An in-memory SqliteStore."""
    config = StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=":memory:")
    s = SqliteStore(config)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def btc_create() -> AssetCreate:
    return AssetCreate(symbol="BTC", name="Bitcoin", type=AssetType.CRYPTO)


@pytest.fixture
def aapl_create() -> AssetCreate:
    return AssetCreate(symbol="AAPL", name="Apple Inc.", type=AssetType.STOCK)


@pytest.fixture
def simple_price_body() -> dict:
    """CoinGecko /simple/price payload for bitcoin."""
    return {
        "bitcoin": {
            "usd": 65000.5,
            "usd_24h_change": 2.5,
            "jpy": 9750075,
            "jpy_24h_change": 2.7,
        }
    }


@pytest.fixture
def global_quote_body() -> dict:
    """Alpha Vantage GLOBAL_QUOTE payload for AAPL."""
    return {
        "Global Quote": {
            "01. symbol": "AAPL",
            "05. price": "189.8400",
            "10. change percent": "1.2345%",
        }
    }
