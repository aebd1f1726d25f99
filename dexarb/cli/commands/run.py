"""Continuous scan and trade loop."""

from __future__ import annotations

import asyncio
import signal

import typer

from dexarb.config import settings
from dexarb.metrics.exporter import start_metrics_server
from dexarb.notify import notify_discord

from ..core import app, log
from ..utils import build_trader, monitored_assets


async def _run_until_signalled(trader, assets) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, trader.stop)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl-C falls back to cancellation.
            pass
    # SIGUSR1 is the operator's emergency stop.
    if hasattr(signal, "SIGUSR1"):
        try:
            loop.add_signal_handler(signal.SIGUSR1, trader.emergency_stop)
        except (NotImplementedError, RuntimeError):
            pass
    await trader.run(assets)


@app.command("run")
def run(
    metrics: bool = typer.Option(True, help="Expose Prometheus metrics on PROM_PORT"),
) -> None:
    """Scan continuously and execute admitted opportunities."""

    assets = monitored_assets(settings)
    if len(assets) < 2:
        log.error("run needs at least two monitored assets on chain %s", settings.chain_id)
        raise typer.Exit(code=1)
    if settings.trading_enabled and not settings.private_key:
        log.error("TRADING_ENABLED requires PRIVATE_KEY")
        raise typer.Exit(code=1)
    try:
        trader = build_trader(settings)
    except EnvironmentError as exc:
        log.error("run: %s", exc)
        raise typer.Exit(code=1)

    if metrics:
        start_metrics_server(settings.prom_port)
    mode = "LIVE" if settings.trading_enabled else "observe-only"
    log.info("dexarb run: %d assets, %s", len(assets), mode)
    notify_discord("run", f"[dexarb] started ({mode}, {len(assets)} assets)")
    try:
        asyncio.run(_run_until_signalled(trader, assets))
    finally:
        status = trader.status()
        log.info("dexarb stopped: %s", status["executor"])
        notify_discord("run", "[dexarb] stopped", extra=status["executor"])


__all__ = ["run"]
