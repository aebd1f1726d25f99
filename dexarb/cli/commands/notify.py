"""Notification utility CLI commands."""

from __future__ import annotations

from dexarb.config import settings
from dexarb.notify import notify_discord

from ..core import app, log


@app.command("notify-test")
def notify_test(message: str = "[notify] test message from dexarb") -> None:
    """Send a test message to the configured Discord webhook."""

    if not getattr(settings, "discord_webhook_url", None):
        log.error("notify-test: no webhook configured (set DISCORD_WEBHOOK_URL)")
        return
    notify_discord("notify", message)


__all__ = ["notify_test"]
