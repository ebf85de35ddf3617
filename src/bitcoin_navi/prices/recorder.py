"""Fire-and-forget persistence of price observations."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from bitcoin_navi.core.models import Asset, PriceHistoryCreate
from bitcoin_navi.prices.models import AssetPrice
from bitcoin_navi.storage.store import StorageProtocol

logger = logging.getLogger(__name__)


class PriceHistoryRecorder:
    """Appends a history entry after each successful fetch without blocking.

    Writes run as background tasks on the current event loop. A failed write
    is logged and never reaches the caller whose price triggered it. Strong
    references to pending tasks are kept until they finish so the loop cannot
    drop them mid-flight; ``drain()`` awaits whatever is still pending.
    """

    def __init__(self, store: StorageProtocol) -> None:
        self._store = store
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(
        self,
        asset: Asset,
        price: AssetPrice,
        timestamp: datetime | None = None,
    ) -> asyncio.Task:
        """Schedule an ``add_price_history`` write and return its task."""
        entry = PriceHistoryCreate(
            asset_id=asset.id,
            price_usd=price.price_usd,
            price_jpy=price.price_jpy,
            volume=None,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        task = asyncio.create_task(
            self._store.add_price_history(entry),
            name=f"record-price-{asset.symbol}",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_done(asset.symbol))
        return task

    async def drain(self) -> None:
        """Wait for all scheduled writes to finish (failures stay logged only)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _on_done(self, symbol: str):
        def _callback(task: asyncio.Task) -> None:
            self._pending.discard(task)
            if task.cancelled():
                logger.warning("Price history write for %s was cancelled", symbol)
                return
            exc = task.exception()
            if exc is not None:
                logger.error("Failed to save price history for %s: %s", symbol, exc)

        return _callback
