"""Tests for the CLI module."""

from __future__ import annotations

import json
import re

import httpx
import pytest
import respx
from click.testing import CliRunner

from bitcoin_navi.cli import _gather_stats, cli

COINGECKO = "https://api.coingecko.com/api/v3"
ALPHA_VANTAGE = "https://www.alphavantage.co/query"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "bitcoin-navi.yml"
    path.write_text(
        f"storage:\n  sqlite_path: '{tmp_path / 'cli.db'}'\n"
        "alpha_vantage:\n  api_key: 'av-test-key'\n"
        "coingecko:\n  api_key: 'cg-test-key'\n"
    )
    return str(path)


@pytest.fixture
def invoke(runner, config_file):
    def _invoke(*args):
        return runner.invoke(cli, ["--config", config_file, *args])

    return _invoke


def _added_id(output: str) -> str:
    match = re.search(r"\(([0-9a-f]{32})\)", output)
    assert match, output
    return match.group(1)


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestGroup:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("price", "prices", "history", "assets", "alerts", "serve", "status"):
            assert name in result.output

    def test_missing_config_file_rejected(self, runner):
        result = runner.invoke(cli, ["--config", "/nonexistent.yml", "status"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# assets / alerts
# ---------------------------------------------------------------------------


class TestAssetCommands:
    def test_add_list_remove(self, invoke):
        result = invoke("assets", "add", "BTC", "--name", "Bitcoin", "--type", "crypto")
        assert result.exit_code == 0, result.output
        asset_id = _added_id(result.output)

        result = invoke("assets", "list")
        assert result.exit_code == 0
        assert "BTC" in result.output
        assert "Bitcoin" in result.output

        result = invoke("assets", "remove", asset_id)
        assert result.exit_code == 0
        assert "Removed" in result.output

        result = invoke("assets", "list")
        assert "No assets registered" in result.output

    def test_remove_unknown_fails(self, invoke):
        result = invoke("assets", "remove", "missing")
        assert result.exit_code == 1
        assert "RecordNotFoundError" in result.output

    def test_invalid_type_rejected(self, invoke):
        result = invoke("assets", "add", "X", "--name", "X", "--type", "bond")
        assert result.exit_code == 2


class TestAlertCommands:
    def test_lifecycle(self, invoke):
        asset_id = _added_id(
            invoke("assets", "add", "BTC", "--name", "Bitcoin", "--type", "crypto").output
        )

        result = invoke(
            "alerts", "add", asset_id, "--type", "high", "--threshold", "10000000"
        )
        assert result.exit_code == 0, result.output
        alert_id = result.output.strip().split()[-1]

        result = invoke("alerts", "update", alert_id, "--inactive")
        assert result.exit_code == 0, result.output

        result = invoke("alerts", "list", "--asset-id", asset_id)
        assert result.exit_code == 0
        assert "high" in result.output
        assert "no" in result.output

        result = invoke("alerts", "remove", alert_id)
        assert result.exit_code == 0
        assert "No alerts configured" in invoke("alerts", "list").output

    def test_add_for_unknown_asset_fails(self, invoke):
        result = invoke("alerts", "add", "missing", "--type", "low", "--threshold", "1")
        assert result.exit_code == 1

    def test_update_requires_a_change(self, invoke):
        result = invoke("alerts", "update", "some-id")
        assert result.exit_code == 2
        assert "Nothing to update" in result.output


# ---------------------------------------------------------------------------
# price / prices / history
# ---------------------------------------------------------------------------


class TestPriceCommands:
    @respx.mock
    def test_price_json(self, invoke, simple_price_body):
        respx.get(f"{COINGECKO}/simple/price").mock(
            return_value=httpx.Response(200, json=simple_price_body)
        )
        result = invoke("price", "BTC", "--type", "crypto", "--format", "json")
        assert result.exit_code == 0, result.output

        payload = json.loads(result.output[result.output.index("{") :])
        assert payload["symbol"] == "BTC"
        assert payload["price_usd"] == "65000.5"
        assert payload["price_jpy"] == "9750075"

    @respx.mock
    def test_price_table_for_stock(self, invoke, global_quote_body):
        respx.get(ALPHA_VANTAGE).mock(return_value=httpx.Response(200, json=global_quote_body))
        result = invoke("price", "AAPL", "--type", "stock")
        assert result.exit_code == 0, result.output
        assert "189.84" in result.output
        assert "28,476" in result.output

    @respx.mock
    def test_price_failure_exits_nonzero(self, invoke):
        respx.get(f"{COINGECKO}/simple/price").mock(return_value=httpx.Response(200, json={}))
        result = invoke("price", "NOPE", "--type", "crypto")
        assert result.exit_code == 1
        assert "DataNotFoundError" in result.output

    @respx.mock
    def test_prices_fetches_stored_assets(self, invoke, simple_price_body):
        respx.get(f"{COINGECKO}/simple/price").mock(
            return_value=httpx.Response(200, json=simple_price_body)
        )
        invoke("assets", "add", "BTC", "--name", "Bitcoin", "--type", "crypto")

        result = invoke("prices")
        assert result.exit_code == 0, result.output
        assert "Fetched 1/1" in result.output

    def test_prices_with_no_assets(self, invoke):
        result = invoke("prices")
        assert result.exit_code == 0
        assert "No assets found" in result.output

    @respx.mock
    def test_history_json(self, invoke):
        respx.get(ALPHA_VANTAGE).mock(
            return_value=httpx.Response(
                200,
                json={
                    "Time Series (Daily)": {
                        "2024-03-08": {"4. close": "170.00", "5. volume": "20"},
                    }
                },
            )
        )
        result = invoke("history", "AAPL", "--type", "stock", "--days", "3", "--format", "json")
        assert result.exit_code == 0, result.output
        points = json.loads(result.output[result.output.index("[") :])
        assert len(points) == 1
        assert points[0]["price_jpy"] == "25500.00"


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


class TestStatus:
    def test_status_table(self, invoke):
        invoke("assets", "add", "AAPL", "--name", "Apple", "--type", "stock")
        result = invoke("status")
        assert result.exit_code == 0, result.output
        assert "sqlite" in result.output
        assert "Assets" in result.output

    async def test_gather_stats(self, store, btc_create, aapl_create):
        await store.create_asset(btc_create)
        await store.create_asset(aapl_create)
        stats = await _gather_stats(store)
        assert stats["total_assets"] == 2
        assert stats["crypto_assets"] == 1
        assert stats["stock_assets"] == 1
        assert stats["total_alerts"] == 0
