"""Storage backend: Protocol definition, SQLite implementation, factory."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from bitcoin_navi.core.config import StorageConfig
from bitcoin_navi.core.exceptions import RecordNotFoundError, StorageError
from bitcoin_navi.core.models import (
    Alert,
    AlertCreate,
    AlertType,
    AlertUpdate,
    Asset,
    AssetCreate,
    AssetType,
    Currency,
    PriceHistory,
    PriceHistoryCreate,
    StorageBackend as StorageBackendEnum,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageProtocol(Protocol):
    """Abstract record store for assets, alerts, and price history.

    Deleting an asset removes its alerts and price history. History entries
    are append-only and read back newest-first.
    """

    async def get_assets(self) -> list[Asset]: ...
    async def get_asset_by_id(self, asset_id: str) -> Asset | None: ...
    async def get_asset_by_symbol(self, symbol: str) -> Asset | None: ...
    async def create_asset(self, asset: AssetCreate) -> Asset: ...
    async def delete_asset(self, asset_id: str) -> None: ...
    async def get_alerts(self) -> list[Alert]: ...
    async def get_alerts_by_asset_id(self, asset_id: str) -> list[Alert]: ...
    async def create_alert(self, alert: AlertCreate) -> Alert: ...
    async def update_alert(self, alert_id: str, updates: AlertUpdate) -> Alert: ...
    async def delete_alert(self, alert_id: str) -> None: ...
    async def get_price_history(
        self, asset_id: str, limit: int | None = None
    ) -> list[PriceHistory]: ...
    async def add_price_history(self, entry: PriceHistoryCreate) -> PriceHistory: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


class SqliteStore:
    """SQLite implementation of the storage protocol.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    foreign keys with ON DELETE CASCADE, and a version-tracked migration
    system. Decimal values are stored as TEXT to keep them exact.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS assets (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS alerts (
                    id TEXT PRIMARY KEY,
                    asset_id TEXT NOT NULL REFERENCES assets(id) ON DELETE CASCADE,
                    type TEXT NOT NULL,
                    threshold TEXT NOT NULL,
                    currency TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    is_triggered INTEGER NOT NULL DEFAULT 0,
                    triggered_at TEXT,
                    created_at TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS price_history (
                    id TEXT PRIMARY KEY,
                    asset_id TEXT NOT NULL REFERENCES assets(id) ON DELETE CASCADE,
                    price_usd TEXT NOT NULL,
                    price_jpy TEXT NOT NULL,
                    volume TEXT,
                    timestamp TEXT NOT NULL
                )""",
                # Indexes
                "CREATE INDEX IF NOT EXISTS idx_assets_symbol ON assets(UPPER(symbol))",
                "CREATE INDEX IF NOT EXISTS idx_alerts_asset_id ON alerts(asset_id)",
                "CREATE INDEX IF NOT EXISTS idx_history_asset_ts ON price_history(asset_id, timestamp)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL + FK, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA foreign_keys=ON")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            await self.close()
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Asset Operations ---

    async def get_assets(self) -> list[Asset]:
        try:
            async with self._db.execute(
                "SELECT * FROM assets ORDER BY created_at, rowid"
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_asset(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list assets: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e

    async def get_asset_by_id(self, asset_id: str) -> Asset | None:
        try:
            async with self._db.execute(
                "SELECT * FROM assets WHERE id = ?", (asset_id,)
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_asset(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to get asset: {e}",
                context={"operation": "query", "table": "assets", "id": asset_id},
            ) from e

    async def get_asset_by_symbol(self, symbol: str) -> Asset | None:
        """First registered asset whose symbol matches case-insensitively."""
        try:
            async with self._db.execute(
                """SELECT * FROM assets WHERE UPPER(symbol) = UPPER(?)
                   ORDER BY created_at, rowid LIMIT 1""",
                (symbol.strip(),),
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_asset(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to get asset by symbol: {e}",
                context={"operation": "query", "table": "assets", "symbol": symbol},
            ) from e

    async def create_asset(self, asset: AssetCreate) -> Asset:
        created = Asset(
            id=_new_id(),
            symbol=asset.symbol,
            name=asset.name,
            type=asset.type,
            created_at=_utcnow(),
        )
        try:
            await self._db.execute(
                """INSERT INTO assets (id, symbol, name, type, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    created.id,
                    created.symbol,
                    created.name,
                    str(created.type),
                    created.created_at.isoformat(),
                ),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to create asset: {e}",
                context={"operation": "insert", "table": "assets", "symbol": asset.symbol},
            ) from e
        logger.info("Created asset %s (%s)", created.symbol, created.id)
        return created

    async def delete_asset(self, asset_id: str) -> None:
        """Delete an asset; its alerts and price history go with it."""
        try:
            cursor = await self._db.execute("DELETE FROM assets WHERE id = ?", (asset_id,))
            await self._db.commit()
            deleted = cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to delete asset: {e}",
                context={"operation": "delete", "table": "assets", "id": asset_id},
            ) from e
        if deleted == 0:
            raise RecordNotFoundError(
                f"Asset with id {asset_id} not found",
                context={"table": "assets", "id": asset_id},
            )

    # --- Alert Operations ---

    async def get_alerts(self) -> list[Alert]:
        try:
            async with self._db.execute(
                "SELECT * FROM alerts ORDER BY created_at, rowid"
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_alert(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list alerts: {e}",
                context={"operation": "query", "table": "alerts"},
            ) from e

    async def get_alerts_by_asset_id(self, asset_id: str) -> list[Alert]:
        try:
            async with self._db.execute(
                "SELECT * FROM alerts WHERE asset_id = ? ORDER BY created_at, rowid",
                (asset_id,),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_alert(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list alerts for asset: {e}",
                context={"operation": "query", "table": "alerts", "asset_id": asset_id},
            ) from e

    async def get_alert_by_id(self, alert_id: str) -> Alert | None:
        async with self._db.execute(
            "SELECT * FROM alerts WHERE id = ?", (alert_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_alert(row) if row is not None else None

    async def create_alert(self, alert: AlertCreate) -> Alert:
        if await self.get_asset_by_id(alert.asset_id) is None:
            raise RecordNotFoundError(
                f"Asset with id {alert.asset_id} not found",
                context={"table": "assets", "id": alert.asset_id},
            )
        created = Alert(id=_new_id(), created_at=_utcnow(), **alert.model_dump())
        try:
            await self._db.execute(
                """INSERT INTO alerts
                   (id, asset_id, type, threshold, currency, is_active,
                    is_triggered, triggered_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (created.id, *self._alert_values(created), created.created_at.isoformat()),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to create alert: {e}",
                context={"operation": "insert", "table": "alerts"},
            ) from e
        return created

    async def update_alert(self, alert_id: str, updates: AlertUpdate) -> Alert:
        """Apply the explicitly set fields of ``updates`` and return the result."""
        try:
            current = await self.get_alert_by_id(alert_id)
        except Exception as e:
            raise StorageError(
                f"Failed to get alert: {e}",
                context={"operation": "query", "table": "alerts", "id": alert_id},
            ) from e
        if current is None:
            raise RecordNotFoundError(
                f"Alert with id {alert_id} not found",
                context={"table": "alerts", "id": alert_id},
            )

        updated = current.apply(updates)
        try:
            await self._db.execute(
                """UPDATE alerts SET asset_id = ?, type = ?, threshold = ?,
                   currency = ?, is_active = ?, is_triggered = ?, triggered_at = ?
                   WHERE id = ?""",
                (*self._alert_values(updated), alert_id),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to update alert: {e}",
                context={"operation": "update", "table": "alerts", "id": alert_id},
            ) from e
        return updated

    async def delete_alert(self, alert_id: str) -> None:
        try:
            cursor = await self._db.execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
            await self._db.commit()
            deleted = cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to delete alert: {e}",
                context={"operation": "delete", "table": "alerts", "id": alert_id},
            ) from e
        if deleted == 0:
            raise RecordNotFoundError(
                f"Alert with id {alert_id} not found",
                context={"table": "alerts", "id": alert_id},
            )

    # --- Price History Operations ---

    async def get_price_history(
        self, asset_id: str, limit: int | None = None
    ) -> list[PriceHistory]:
        """History for one asset, newest first, optionally truncated."""
        try:
            query = """SELECT * FROM price_history WHERE asset_id = ?
                       ORDER BY timestamp DESC, rowid DESC"""
            params: list = [asset_id]
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            async with self._db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_price_history(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to get price history: {e}",
                context={"operation": "query", "table": "price_history", "asset_id": asset_id},
            ) from e

    async def add_price_history(self, entry: PriceHistoryCreate) -> PriceHistory:
        created = PriceHistory(id=_new_id(), **entry.model_dump())
        try:
            await self._db.execute(
                """INSERT INTO price_history
                   (id, asset_id, price_usd, price_jpy, volume, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    created.id,
                    created.asset_id,
                    str(created.price_usd),
                    str(created.price_jpy),
                    str(created.volume) if created.volume is not None else None,
                    _as_utc(created.timestamp).isoformat(),
                ),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to add price history: {e}",
                context={
                    "operation": "insert",
                    "table": "price_history",
                    "asset_id": entry.asset_id,
                },
            ) from e
        return created

    # --- Row Mapping Helpers ---

    @staticmethod
    def _alert_values(alert: Alert) -> tuple:
        return (
            alert.asset_id,
            str(alert.type),
            str(alert.threshold),
            str(alert.currency),
            int(alert.is_active),
            int(alert.is_triggered),
            alert.triggered_at.isoformat() if alert.triggered_at else None,
        )

    @staticmethod
    def _row_to_asset(row: aiosqlite.Row) -> Asset:
        return Asset(
            id=row["id"],
            symbol=row["symbol"],
            name=row["name"],
            type=AssetType(row["type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_alert(row: aiosqlite.Row) -> Alert:
        return Alert(
            id=row["id"],
            asset_id=row["asset_id"],
            type=AlertType(row["type"]),
            threshold=Decimal(row["threshold"]),
            currency=Currency(row["currency"]),
            is_active=bool(row["is_active"]),
            is_triggered=bool(row["is_triggered"]),
            triggered_at=(
                datetime.fromisoformat(row["triggered_at"]) if row["triggered_at"] else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_price_history(row: aiosqlite.Row) -> PriceHistory:
        return PriceHistory(
            id=row["id"],
            asset_id=row["asset_id"],
            price_usd=Decimal(row["price_usd"]),
            price_jpy=Decimal(row["price_jpy"]),
            volume=Decimal(row["volume"]) if row["volume"] is not None else None,
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    """Normalize to UTC so ISO strings sort chronologically."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize a storage backend based on configuration."""
    if config.backend == StorageBackendEnum.SQLITE:
        store = SqliteStore(config)
        await store.initialize()
        return store
    raise StorageError(
        f"Unsupported storage backend: {config.backend}",
        context={"operation": "create_store", "backend": str(config.backend)},
    )
