"""Integration tests for the price service.

Uses FastAPI TestClient with real SQLite storage; only the upstream quote
providers are mocked at the HTTP layer.
"""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from bitcoin_navi.api.app import build_app_state, create_app
from bitcoin_navi.core.models import AssetCreate, AssetType

pytestmark = pytest.mark.integration

COINGECKO = "https://api.coingecko.com/api/v3"
ALPHA_VANTAGE = "https://www.alphavantage.co/query"


@pytest.fixture
def mocked_providers(simple_price_body, global_quote_body):
    with respx.mock(assert_all_called=False) as router:
        router.get(f"{COINGECKO}/simple/price").mock(
            return_value=httpx.Response(200, json=simple_price_body)
        )
        router.get(ALPHA_VANTAGE).mock(
            return_value=httpx.Response(200, json=global_quote_body)
        )
        yield router


class TestPersistenceAcrossRestarts:
    def test_shutdown_flushes_pending_history(self, api_config, mocked_providers):
        with TestClient(create_app(config=api_config)) as client:
            resp = client.post(
                "/api/assets", json={"symbol": "BTC", "name": "Bitcoin", "type": "crypto"}
            )
            asset_id = resp.json()["id"]
            assert client.get("/api/prices").json()["fetched"] == 1
            assert client.get("/api/prices/BTC").status_code == 200
        # Lifespan shutdown drained the recorder before closing the store

        with TestClient(create_app(config=api_config)) as client:
            history = client.get(f"/api/assets/{asset_id}/history").json()
            assert history["total"] == 2
            assets = client.get("/api/assets").json()
            assert [a["symbol"] for a in assets["items"]] == ["BTC"]

    def test_cascade_delete_through_api(self, api_config, mocked_providers):
        with TestClient(create_app(config=api_config)) as client:
            asset = client.post(
                "/api/assets", json={"symbol": "AAPL", "name": "Apple", "type": "stock"}
            ).json()
            for threshold in (200, 150):
                client.post(
                    "/api/alerts",
                    json={"asset_id": asset["id"], "type": "high", "threshold": threshold},
                )
            for _ in range(5):
                assert client.get("/api/prices/AAPL").status_code == 200
            client.portal.call(client.app.state.app_state.recorder.drain)

            assert client.get(f"/api/assets/{asset['id']}/history").json()["total"] == 5
            assert client.get(f"/api/assets/{asset['id']}/alerts").json()["total"] == 2

            assert client.delete(f"/api/assets/{asset['id']}").status_code == 204

            assert client.get("/api/alerts").json()["total"] == 0
            assert client.get(f"/api/assets/{asset['id']}/history").status_code == 404
            health = client.get("/api/health").json()
            assert health["total_assets"] == 0
            assert health["total_alerts"] == 0


class TestWiredAggregator:
    async def test_quote_assets_records_history(
        self, api_config, integration_store, mocked_providers
    ):
        state = await build_app_state(api_config, store=integration_store)
        try:
            btc = await integration_store.create_asset(
                AssetCreate(symbol="BTC", name="Bitcoin", type=AssetType.CRYPTO)
            )
            aapl = await integration_store.create_asset(
                AssetCreate(symbol="AAPL", name="Apple", type=AssetType.STOCK)
            )

            results = await state.aggregator.quote_assets([btc, aapl])
            await state.recorder.drain()

            assert results[0].price_jpy == Decimal("9750075")
            assert results[1].price_jpy == Decimal("189.8400") * Decimal("150")

            [btc_row] = await integration_store.get_price_history(btc.id)
            [aapl_row] = await integration_store.get_price_history(aapl.id)
            assert btc_row.price_usd == Decimal("65000.5")
            assert aapl_row.price_jpy == Decimal("28476.000000")
        finally:
            await state.coingecko.close()
            await state.alpha_vantage.close()
