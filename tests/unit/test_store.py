"""Tests for the SQLite storage backend."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from bitcoin_navi.core.config import StorageConfig
from bitcoin_navi.core.exceptions import RecordNotFoundError, StorageError
from bitcoin_navi.core.models import (
    AlertCreate,
    AlertType,
    AlertUpdate,
    AssetType,
    Currency,
    PriceHistoryCreate,
    StorageBackend as StorageBackendEnum,
)
from bitcoin_navi.storage.store import SqliteStore, StorageProtocol, create_store

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_history():
    """Factory for PriceHistoryCreate with overridable defaults."""

    def _make(asset_id, minutes=0, **overrides):
        defaults = dict(
            asset_id=asset_id,
            price_usd=Decimal("65000.12"),
            price_jpy=Decimal("9750018.00"),
            volume=None,
            timestamp=T0 + timedelta(minutes=minutes),
        )
        defaults.update(overrides)
        return PriceHistoryCreate(**defaults)

    return _make


# --- Lifecycle ---


class TestLifecycle:
    async def test_satisfies_protocol(self, store):
        assert isinstance(store, StorageProtocol)

    async def test_health_check(self, store):
        assert await store.health_check() is True

    async def test_health_check_after_close(self):
        s = SqliteStore(StorageConfig(sqlite_path=":memory:"))
        await s.initialize()
        await s.close()
        assert await s.health_check() is False

    async def test_migrations_are_idempotent(self, tmp_path, btc_create):
        config = StorageConfig(sqlite_path=str(tmp_path / "nested" / "navi.db"))
        first = await create_store(config)
        await first.create_asset(btc_create)
        await first.close()

        second = await create_store(config)
        try:
            assets = await second.get_assets()
            assert [a.symbol for a in assets] == ["BTC"]
        finally:
            await second.close()

    async def test_create_store_returns_sqlite(self):
        s = await create_store(
            StorageConfig(backend=StorageBackendEnum.SQLITE, sqlite_path=":memory:")
        )
        try:
            assert isinstance(s, SqliteStore)
        finally:
            await s.close()

    async def test_initialize_failure_wrapped(self, tmp_path):
        # A directory where the database file should be
        bad = tmp_path / "db"
        bad.mkdir()
        s = SqliteStore(StorageConfig(sqlite_path=str(bad)))
        with pytest.raises(StorageError) as exc_info:
            await s.initialize()
        assert exc_info.value.context["operation"] == "initialize"


# --- Assets ---


class TestAssets:
    async def test_create_assigns_id_and_timestamp(self, store, btc_create):
        asset = await store.create_asset(btc_create)
        assert asset.id
        assert asset.symbol == "BTC"
        assert asset.type == AssetType.CRYPTO
        assert asset.created_at.tzinfo is not None

    async def test_ids_are_unique(self, store, btc_create):
        a = await store.create_asset(btc_create)
        b = await store.create_asset(btc_create)
        assert a.id != b.id

    async def test_get_assets_in_creation_order(self, store, btc_create, aapl_create):
        await store.create_asset(btc_create)
        await store.create_asset(aapl_create)
        assert [a.symbol for a in await store.get_assets()] == ["BTC", "AAPL"]

    async def test_get_by_id(self, store, aapl_create):
        created = await store.create_asset(aapl_create)
        fetched = await store.get_asset_by_id(created.id)
        assert fetched == created

    async def test_get_by_id_unknown(self, store):
        assert await store.get_asset_by_id("missing") is None

    async def test_get_by_symbol_case_insensitive(self, store, aapl_create):
        created = await store.create_asset(aapl_create)
        assert (await store.get_asset_by_symbol("aapl")).id == created.id
        assert await store.get_asset_by_symbol("MSFT") is None

    async def test_delete_unknown_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.delete_asset("missing")

    async def test_delete_cascades_to_alerts_and_history(
        self, store, btc_create, aapl_create, make_history
    ):
        btc = await store.create_asset(btc_create)
        aapl = await store.create_asset(aapl_create)
        for threshold in ("10000000", "9000000"):
            await store.create_alert(
                AlertCreate(asset_id=btc.id, type=AlertType.HIGH, threshold=Decimal(threshold))
            )
        for i in range(5):
            await store.add_price_history(make_history(btc.id, minutes=i))
        await store.add_price_history(make_history(aapl.id))

        await store.delete_asset(btc.id)

        assert await store.get_asset_by_id(btc.id) is None
        assert await store.get_alerts_by_asset_id(btc.id) == []
        assert await store.get_price_history(btc.id) == []
        # Other assets are untouched
        assert len(await store.get_price_history(aapl.id)) == 1


# --- Alerts ---


class TestAlerts:
    async def test_create_with_defaults(self, store, btc_create):
        asset = await store.create_asset(btc_create)
        alert = await store.create_alert(
            AlertCreate(asset_id=asset.id, type=AlertType.LOW, threshold=Decimal("8500000.5"))
        )
        assert alert.currency == Currency.JPY
        assert alert.is_active is True
        assert alert.is_triggered is False
        assert alert.triggered_at is None

        stored = await store.get_alerts()
        assert stored == [alert]
        assert stored[0].threshold == Decimal("8500000.5")

    async def test_create_for_unknown_asset_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.create_alert(
                AlertCreate(asset_id="missing", type=AlertType.HIGH, threshold=Decimal("1"))
            )

    async def test_get_by_asset(self, store, btc_create, aapl_create):
        btc = await store.create_asset(btc_create)
        aapl = await store.create_asset(aapl_create)
        await store.create_alert(AlertCreate(asset_id=btc.id, type="high", threshold=1))
        await store.create_alert(AlertCreate(asset_id=aapl.id, type="low", threshold=2))

        alerts = await store.get_alerts_by_asset_id(aapl.id)
        assert len(alerts) == 1
        assert alerts[0].type == AlertType.LOW

    async def test_partial_update(self, store, btc_create):
        asset = await store.create_asset(btc_create)
        alert = await store.create_alert(
            AlertCreate(asset_id=asset.id, type=AlertType.HIGH, threshold=Decimal("100"))
        )
        triggered = datetime(2024, 3, 2, tzinfo=timezone.utc)

        updated = await store.update_alert(
            alert.id, AlertUpdate(is_triggered=True, triggered_at=triggered)
        )

        assert updated.is_triggered is True
        assert updated.triggered_at == triggered
        # Untouched fields keep their values
        assert updated.threshold == Decimal("100")
        assert updated.type == AlertType.HIGH
        assert (await store.get_alerts())[0] == updated

    async def test_update_can_clear_triggered_at(self, store, btc_create):
        asset = await store.create_asset(btc_create)
        alert = await store.create_alert(
            AlertCreate(
                asset_id=asset.id,
                type=AlertType.HIGH,
                threshold=Decimal("100"),
                is_triggered=True,
                triggered_at=T0,
            )
        )
        updated = await store.update_alert(
            alert.id, AlertUpdate(is_triggered=False, triggered_at=None)
        )
        assert updated.triggered_at is None

    async def test_update_unknown_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.update_alert("missing", AlertUpdate(is_active=False))

    async def test_delete(self, store, btc_create):
        asset = await store.create_asset(btc_create)
        alert = await store.create_alert(
            AlertCreate(asset_id=asset.id, type=AlertType.HIGH, threshold=Decimal("1"))
        )
        await store.delete_alert(alert.id)
        assert await store.get_alerts() == []

    async def test_delete_unknown_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.delete_alert("missing")


# --- Price History ---


class TestPriceHistory:
    async def test_newest_first(self, store, btc_create, make_history):
        asset = await store.create_asset(btc_create)
        for i in (2, 0, 1):
            await store.add_price_history(
                make_history(asset.id, minutes=i, price_usd=Decimal(i + 1))
            )

        history = await store.get_price_history(asset.id)
        assert [h.price_usd for h in history] == [Decimal(3), Decimal(2), Decimal(1)]

    async def test_limit(self, store, btc_create, make_history):
        asset = await store.create_asset(btc_create)
        for i in range(5):
            await store.add_price_history(make_history(asset.id, minutes=i))

        history = await store.get_price_history(asset.id, limit=2)
        assert len(history) == 2
        assert history[0].timestamp == T0 + timedelta(minutes=4)

    async def test_decimals_round_trip_exactly(self, store, btc_create, make_history):
        asset = await store.create_asset(btc_create)
        entry = await store.add_price_history(
            make_history(asset.id, price_usd=Decimal("0.000012345678"), volume=Decimal("42.5"))
        )
        [stored] = await store.get_price_history(asset.id)
        assert stored == entry
        assert stored.price_usd == Decimal("0.000012345678")

    async def test_unknown_asset_rejected(self, store, make_history):
        with pytest.raises(StorageError):
            await store.add_price_history(make_history("missing"))

    async def test_naive_timestamp_treated_as_utc(self, store, btc_create, make_history):
        asset = await store.create_asset(btc_create)
        await store.add_price_history(
            make_history(asset.id, timestamp=datetime(2024, 3, 1, 9, 0))
        )
        [stored] = await store.get_price_history(asset.id)
        assert stored.timestamp == T0
