"""One-shot opportunity scan."""

from __future__ import annotations

import asyncio

import typer

from dexarb.config import settings

from ..core import app, log
from ..utils import build_scanner, format_opportunity, monitored_assets


@app.command("scan")
def scan(
    limit: int = typer.Option(10, help="Maximum opportunities to print"),
) -> None:
    """Run a single scan tick and print the best opportunities."""

    assets = monitored_assets(settings)
    if len(assets) < 2:
        log.error("scan needs at least two monitored assets on chain %s", settings.chain_id)
        raise typer.Exit(code=1)
    try:
        scanner = build_scanner(settings)
    except EnvironmentError as exc:
        log.error("scan: %s", exc)
        raise typer.Exit(code=1)

    opportunities = asyncio.run(scanner.scan_once(assets))
    if not opportunities:
        typer.echo("no opportunities above threshold")
        return
    for opp in opportunities[:limit]:
        typer.echo(format_opportunity(opp))


__all__ = ["scan"]
