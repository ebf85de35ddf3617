"""Integration test fixtures — real I/O but no network."""

from __future__ import annotations

from pathlib import Path

import pytest

from bitcoin_navi.core.config import (
    AlphaVantageConfig,
    APIConfig,
    CoinGeckoConfig,
    NaviConfig,
    StorageConfig,
)
from bitcoin_navi.core.models import StorageBackend
from bitcoin_navi.storage.store import SqliteStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "integration.db"


@pytest.fixture
def api_config(db_path: Path) -> NaviConfig:
    return NaviConfig(
        coingecko=CoinGeckoConfig(api_key="cg-test-key"),
        alpha_vantage=AlphaVantageConfig(api_key="av-test-key"),
        storage=StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=str(db_path)),
        api=APIConfig(),
    )


@pytest.fixture
async def integration_store(db_path: Path) -> SqliteStore:
    """An initialized SqliteStore on the same file the app uses."""
    store = SqliteStore(
        StorageConfig(backend=StorageBackend.SQLITE, sqlite_path=str(db_path))
    )
    await store.initialize()
    yield store
    await store.close()
