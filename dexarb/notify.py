"""Notification helpers for external services.

Messages go to a Discord webhook when one is configured and are always
mirrored to the console log. Delivery failures are logged and counted, never
raised, so a broken webhook cannot interrupt trading.
"""

from __future__ import annotations

import json
import logging
import urllib.request
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from .config import settings
from .engine.pricing import from_raw_units
from .metrics.exporter import ERRORS_TOTAL
from .models import ExecutionResult, Opportunity

log = logging.getLogger(__name__)


def fmt_usd(amount: float) -> str:
    """Return *amount* formatted as a USD string."""

    return f"${amount:,.2f}"


def _with_wait(webhook: str) -> str:
    # wait=true makes Discord return a response body we can log on failure.
    pr = urlparse(webhook)
    if not (pr.netloc.endswith("discord.com") or pr.netloc.endswith("discordapp.com")):
        return webhook
    qs = dict(parse_qsl(pr.query, keep_blank_values=True))
    if "wait" in qs:
        return webhook
    qs["wait"] = "true"
    return urlunparse(pr._replace(query=urlencode(qs)))


def notify_discord(
    source: str,
    message: str,
    url: Optional[str] = None,
    *,
    severity: str | None = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> None:
    """Send *message* to a Discord webhook.

    Parameters
    ----------
    source:
        Subsystem issuing the notification; used to label error metrics.
    message:
        Text content to send.
    url:
        Optional override for the webhook URL. Defaults to
        ``settings.discord_webhook_url``.
    severity:
        Console log level hint: ``"info"``, ``"warning"`` or ``"error"``.
    extra:
        Optional structured context appended to the message as a JSON block.
    """

    sev = (severity or "info").lower()
    console = message
    if extra:
        console = f"{message} | ctx={json.dumps(extra, separators=(',', ':'), default=str)}"
    if sev == "error":
        log.error("[discord] %s", console)
    elif sev in ("warn", "warning"):
        log.warning("[discord] %s", console)
    else:
        log.info("[discord] %s", console)

    webhook = url or getattr(settings, "discord_webhook_url", None)
    if not webhook:
        log.debug("notify_discord: webhook not configured; skipping network send")
        return

    content = message
    if extra:
        content += "\n```json\n" + json.dumps(extra, indent=2, default=str) + "\n```"
    req = urllib.request.Request(
        _with_wait(webhook),
        data=json.dumps({"content": content}).encode("utf-8"),
        headers={
            "Content-Type": "application/json",
            "User-Agent": "dexarb/0.1",
        },
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=3):
            log.debug("notify_discord: sent message (%d chars)", len(message))
    except Exception as exc:
        code = getattr(exc, "code", None)
        if code is not None:
            log.error("notify_discord: HTTP %s error: %s", code, exc)
        else:
            log.error("notify_discord: send failed: %s", exc)
        ERRORS_TOTAL.labels(source, "discord_send").inc()


def format_execution(opp: Opportunity, result: ExecutionResult) -> str:
    """Return a one-line summary of an execution attempt."""

    origin = opp.origin
    route = " -> ".join(opp.venues)
    if result.success:
        profit = from_raw_units(result.realized_profit, origin.decimals)
        return (
            f"[dexarb] SETTLED {opp.pair} via {route}: realized {profit:f} {origin.symbol} "
            f"({len(result.transaction_hashes)} txs)"
        )
    return f"[dexarb] FAILED {opp.pair} via {route}: {result.error_kind}: {result.error}"


def notify_execution(opp: Opportunity, result: ExecutionResult, cfg: Any = None) -> None:
    """Notify about *result* according to the trade/error toggles."""

    cfg = cfg or settings
    if result.success and not getattr(cfg, "discord_trade_notify", True):
        return
    if not result.success and not getattr(cfg, "discord_error_notify", False):
        return
    extra = {
        "opportunity": opp.opportunity_id,
        "profit_bps": opp.profit_bps,
        "tx": list(result.transaction_hashes),
    }
    if opp.profit_usd is not None:
        extra["profit_usd"] = fmt_usd(opp.profit_usd)
    notify_discord(
        "executor",
        format_execution(opp, result),
        url=getattr(cfg, "discord_webhook_url", None),
        severity="info" if result.success else "error",
        extra=extra,
    )
