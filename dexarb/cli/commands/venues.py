"""Venue and asset listing."""

from __future__ import annotations

import typer

from dexarb.adapters.registry import QUOTING_MODELS
from dexarb.config import settings

from ..core import app
from ..utils import monitored_assets


@app.command("venues")
def venues() -> None:
    """List configured venues, their quoting model and monitored assets."""

    for definition in settings.venues:
        model = str(definition.get("model", "constant_product"))
        status = "" if model in QUOTING_MODELS else " [unsupported model]"
        flags = []
        if definition.get("name") in settings.blacklisted_venues:
            flags.append("blacklisted")
        if definition.get("name") not in settings.trusted_venues:
            flags.append("untrusted")
        suffix = f" ({', '.join(flags)})" if flags else ""
        typer.echo(
            f"{definition.get('name')}@{definition.get('chain_id', 1)} "
            f"{model} router={definition.get('router')}{status}{suffix}"
        )
    assets = monitored_assets(settings)
    typer.echo("assets: " + ", ".join(a.symbol for a in assets))


__all__ = ["venues"]
