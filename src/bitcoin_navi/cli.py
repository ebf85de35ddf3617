"""Click-based CLI for bitcoin-navi.

Thin wrapper around library modules. Zero business logic: every operation
delegates to the price aggregator or the storage backend.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from decimal import Decimal

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)

ASSET_TYPES = ["crypto", "stock"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from bitcoin_navi.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _create_store_async(config):
    """Create and initialize storage from config."""
    from bitcoin_navi.storage import create_store

    return await create_store(config.storage)


async def _create_app_state_async(config):
    """Wire store, providers, and aggregator the same way the API does."""
    from bitcoin_navi.api.app import build_app_state

    return await build_app_state(config)


def _fail(exc: Exception) -> None:
    console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
    raise SystemExit(1)


def _fmt(value: Decimal | None, places: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{places}f}"


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="BITCOIN_NAVI_CONFIG",
    default=None,
    help="Path to bitcoin-navi.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="bitcoin-navi")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """bitcoin-navi: crypto and stock price monitoring."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# price / prices / history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("symbol")
@click.option(
    "--type",
    "asset_type",
    type=click.Choice(ASSET_TYPES, case_sensitive=False),
    required=True,
    help="Asset class, which selects the quote provider.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def price(ctx: click.Context, symbol: str, asset_type: str, output_format: str) -> None:
    """Fetch the live price of SYMBOL in USD and JPY."""
    async def _run():
        from bitcoin_navi.core import AssetType, NaviError

        config = _load_config(ctx)
        state = await _create_app_state_async(config)
        try:
            result = await state.aggregator.get_asset_price(symbol, AssetType(asset_type))
        except NaviError as e:
            _fail(e)
        finally:
            await state.close()

        if output_format == "json":
            _echo_json({"symbol": symbol, **result.model_dump(mode="json")})
            return

        table = Table(title=f"{symbol.upper()} ({asset_type})")
        table.add_column("USD", justify="right")
        table.add_column("JPY", justify="right")
        table.add_column("24h %", justify="right")
        table.add_row(
            _fmt(result.price_usd), _fmt(result.price_jpy, 0), _fmt(result.change_24h)
        )
        console.print(table)

    _run_async(_run())


@cli.command()
@click.pass_context
def prices(ctx: click.Context) -> None:
    """Fetch prices for every stored asset and record them to history."""
    async def _run():
        config = _load_config(ctx)
        state = await _create_app_state_async(config)
        try:
            assets = await state.store.get_assets()
            if not assets:
                console.print("[yellow]No assets found in database.[/yellow]")
                return
            results = await state.aggregator.quote_assets(assets)
        finally:
            await state.close()

        table = Table(title="Latest Prices")
        table.add_column("Symbol", style="bold")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("USD", justify="right")
        table.add_column("JPY", justify="right")
        table.add_column("24h %", justify="right")

        failed = 0
        for asset, result in zip(assets, results):
            if result is None:
                failed += 1
                table.add_row(asset.symbol, asset.name, asset.type.value, "[red]error[/red]", "", "")
                continue
            table.add_row(
                asset.symbol,
                asset.name,
                asset.type.value,
                _fmt(result.price_usd),
                _fmt(result.price_jpy, 0),
                _fmt(result.change_24h),
            )

        console.print(table)
        console.print(f"Fetched {len(assets) - failed}/{len(assets)} ({failed} failed)")

    _run_async(_run())


@cli.command()
@click.argument("symbol")
@click.option(
    "--type",
    "asset_type",
    type=click.Choice(ASSET_TYPES, case_sensitive=False),
    required=True,
    help="Asset class, which selects the quote provider.",
)
@click.option("--days", "-d", type=click.IntRange(min=1), default=7, help="Days of history.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def history(
    ctx: click.Context, symbol: str, asset_type: str, days: int, output_format: str
) -> None:
    """Show provider price history for SYMBOL."""
    async def _run():
        from bitcoin_navi.core import AssetType, NaviError

        config = _load_config(ctx)
        state = await _create_app_state_async(config)
        try:
            points = await state.aggregator.get_asset_history(
                symbol, AssetType(asset_type), days
            )
        except NaviError as e:
            _fail(e)
        finally:
            await state.close()

        if output_format == "json":
            _echo_json([p.model_dump(mode="json") for p in points])
            return

        table = Table(title=f"{symbol.upper()} history ({days}d)")
        table.add_column("Timestamp")
        table.add_column("USD", justify="right")
        table.add_column("JPY", justify="right")
        table.add_column("Volume", justify="right")
        for p in points:
            table.add_row(
                p.timestamp.isoformat(timespec="minutes"),
                _fmt(p.price_usd),
                _fmt(p.price_jpy, 0),
                _fmt(p.volume, 0),
            )
        console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# assets
# ---------------------------------------------------------------------------


@cli.group()
def assets() -> None:
    """Manage tracked assets."""


@assets.command("list")
@click.pass_context
def assets_list(ctx: click.Context) -> None:
    """List registered assets."""
    async def _run():
        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            rows = await store.get_assets()
        finally:
            await store.close()

        if not rows:
            console.print("[yellow]No assets registered. Use 'assets add'.[/yellow]")
            return

        table = Table(title="Assets")
        table.add_column("ID", style="dim")
        table.add_column("Symbol", style="bold")
        table.add_column("Name")
        table.add_column("Type")
        for a in rows:
            table.add_row(a.id, a.symbol, a.name, a.type.value)
        console.print(table)

    _run_async(_run())


@assets.command("add")
@click.argument("symbol")
@click.option("--name", "-n", required=True, help="Display name.")
@click.option(
    "--type",
    "asset_type",
    type=click.Choice(ASSET_TYPES, case_sensitive=False),
    required=True,
)
@click.pass_context
def assets_add(ctx: click.Context, symbol: str, name: str, asset_type: str) -> None:
    """Register SYMBOL as a tracked asset."""
    async def _run():
        from bitcoin_navi.core import AssetCreate

        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            asset = await store.create_asset(
                AssetCreate(symbol=symbol, name=name, type=asset_type.lower())
            )
        finally:
            await store.close()
        console.print(f"[green]Added {asset.symbol}[/green] ({asset.id})")

    _run_async(_run())


@assets.command("remove")
@click.argument("asset_id")
@click.pass_context
def assets_remove(ctx: click.Context, asset_id: str) -> None:
    """Delete an asset with its alerts and price history."""
    async def _run():
        from bitcoin_navi.core import RecordNotFoundError

        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            await store.delete_asset(asset_id)
        except RecordNotFoundError as e:
            _fail(e)
        finally:
            await store.close()
        console.print(f"[green]Removed asset {asset_id}[/green]")

    _run_async(_run())


# ---------------------------------------------------------------------------
# alerts
# ---------------------------------------------------------------------------


@cli.group()
def alerts() -> None:
    """Manage price alerts."""


@alerts.command("list")
@click.option("--asset-id", default=None, help="Only alerts for this asset.")
@click.pass_context
def alerts_list(ctx: click.Context, asset_id: str | None) -> None:
    """List configured alerts."""
    async def _run():
        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            if asset_id:
                rows = await store.get_alerts_by_asset_id(asset_id)
            else:
                rows = await store.get_alerts()
        finally:
            await store.close()

        if not rows:
            console.print("[yellow]No alerts configured.[/yellow]")
            return

        table = Table(title="Alerts")
        table.add_column("ID", style="dim")
        table.add_column("Asset ID", style="dim")
        table.add_column("Type")
        table.add_column("Threshold", justify="right")
        table.add_column("Currency")
        table.add_column("Active")
        table.add_column("Triggered")
        for a in rows:
            table.add_row(
                a.id,
                a.asset_id,
                a.type.value,
                _fmt(a.threshold),
                a.currency.value,
                "yes" if a.is_active else "no",
                "yes" if a.is_triggered else "no",
            )
        console.print(table)

    _run_async(_run())


@alerts.command("add")
@click.argument("asset_id")
@click.option(
    "--type", "alert_type", type=click.Choice(["high", "low"]), required=True
)
@click.option("--threshold", "-t", type=str, required=True, help="Price threshold.")
@click.option(
    "--currency", type=click.Choice(["JPY", "USD"]), default="JPY", show_default=True
)
@click.pass_context
def alerts_add(
    ctx: click.Context, asset_id: str, alert_type: str, threshold: str, currency: str
) -> None:
    """Create an alert on ASSET_ID."""
    async def _run():
        from bitcoin_navi.core import AlertCreate, RecordNotFoundError

        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            alert = await store.create_alert(
                AlertCreate(
                    asset_id=asset_id,
                    type=alert_type,
                    threshold=Decimal(threshold),
                    currency=currency,
                )
            )
        except RecordNotFoundError as e:
            _fail(e)
        finally:
            await store.close()
        console.print(f"[green]Created alert[/green] {alert.id}")

    _run_async(_run())


@alerts.command("update")
@click.argument("alert_id")
@click.option("--type", "alert_type", type=click.Choice(["high", "low"]), default=None)
@click.option("--threshold", "-t", type=str, default=None)
@click.option("--currency", type=click.Choice(["JPY", "USD"]), default=None)
@click.option("--active/--inactive", default=None)
@click.pass_context
def alerts_update(
    ctx: click.Context,
    alert_id: str,
    alert_type: str | None,
    threshold: str | None,
    currency: str | None,
    active: bool | None,
) -> None:
    """Change fields of ALERT_ID; omitted options are left as they are."""
    changes = {
        "type": alert_type,
        "threshold": Decimal(threshold) if threshold is not None else None,
        "currency": currency,
        "is_active": active,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise click.UsageError("Nothing to update.")

    async def _run():
        from bitcoin_navi.core import AlertUpdate, RecordNotFoundError

        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            alert = await store.update_alert(alert_id, AlertUpdate(**changes))
        except RecordNotFoundError as e:
            _fail(e)
        finally:
            await store.close()
        console.print(f"[green]Updated alert[/green] {alert.id}")

    _run_async(_run())


@alerts.command("remove")
@click.argument("alert_id")
@click.pass_context
def alerts_remove(ctx: click.Context, alert_id: str) -> None:
    """Delete ALERT_ID."""
    async def _run():
        from bitcoin_navi.core import RecordNotFoundError

        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            await store.delete_alert(alert_id)
        except RecordNotFoundError as e:
            _fail(e)
        finally:
            await store.close()
        console.print(f"[green]Removed alert {alert_id}[/green]")

    _run_async(_run())


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory loads its own config; point it at the same file.
    if ctx.obj.get("config_path"):
        os.environ["BITCOIN_NAVI_CONFIG"] = ctx.obj["config_path"]

    console.print(f"Starting bitcoin-navi API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "bitcoin_navi.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show system status and configuration."""
    async def _run():
        config = _load_config(ctx)
        store = await _create_store_async(config)
        try:
            stats = await _gather_stats(store)
        finally:
            await store.close()

        table = Table(title="bitcoin-navi Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Storage backend", config.storage.backend.value)
        table.add_row("Database path", config.storage.sqlite_path)
        table.add_section()
        table.add_row("CoinGecko API key", "set" if config.coingecko.api_key else "not set (demo)")
        table.add_row("Alpha Vantage API key", "set" if config.alpha_vantage.api_key else "not set")
        table.add_row(
            "Alpha Vantage quota",
            f"{config.alpha_vantage.max_requests} / {config.alpha_vantage.window_ms} ms",
        )
        table.add_row("USD/JPY rate", str(config.fx.usd_jpy_rate))
        table.add_section()
        table.add_row("Assets", str(stats["total_assets"]))
        table.add_row("  crypto", str(stats["crypto_assets"]))
        table.add_row("  stock", str(stats["stock_assets"]))
        table.add_row("Alerts", str(stats["total_alerts"]))
        table.add_row("Active alerts", str(stats["active_alerts"]))

        console.print(table)

    _run_async(_run())


async def _gather_stats(store) -> dict:
    """Gather basic statistics from storage."""
    assets = await store.get_assets()
    alerts = await store.get_alerts()

    return {
        "total_assets": len(assets),
        "crypto_assets": sum(1 for a in assets if a.type == "crypto"),
        "stock_assets": sum(1 for a in assets if a.type == "stock"),
        "total_alerts": len(alerts),
        "active_alerts": sum(1 for a in alerts if a.is_active),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
