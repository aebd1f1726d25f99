"""Shared builders used across CLI command modules."""

from __future__ import annotations

from typing import Any

from dexarb.adapters.registry import build_registry
from dexarb.chain import ChainClient, connect
from dexarb.config import parse_assets
from dexarb.engine.executor import ExecutionOrchestrator
from dexarb.engine.ledger import PositionLedger
from dexarb.engine.pricing import from_raw_units
from dexarb.engine.risk import RiskGate
from dexarb.engine.scanner import OpportunityScanner
from dexarb.models import Asset, Opportunity
from dexarb.oracles import StaticPriceOracle
from dexarb.persistence.db import init_db
from dexarb.signer import LocalAccountSigner
from dexarb.trader import ArbitrageTrader


def monitored_assets(cfg: Any) -> list[Asset]:
    """Return configured assets on the configured chain."""

    chain_id = int(cfg.chain_id)
    return [a for a in parse_assets(cfg.monitored_assets) if a.chain_id == chain_id]


def price_oracle(cfg: Any) -> StaticPriceOracle | None:
    prices = getattr(cfg, "static_prices", None) or {}
    return StaticPriceOracle(prices) if prices else None


def build_scanner(cfg: Any) -> OpportunityScanner:
    """Build a scanner over every configured venue using ``RPC_URL``."""

    w3 = connect(cfg.rpc_url)
    registry = build_registry(cfg.venues, w3, deadline_secs=int(cfg.swap_deadline_secs))
    return OpportunityScanner(registry, cfg, price_oracle=price_oracle(cfg))


def build_trader(cfg: Any) -> ArbitrageTrader:
    """Build the full pipeline; a signer is attached only when a key is set."""

    w3 = connect(cfg.rpc_url)
    registry = build_registry(cfg.venues, w3, deadline_secs=int(cfg.swap_deadline_secs))
    oracle = price_oracle(cfg)
    ledger = PositionLedger.from_settings(cfg)
    signer = LocalAccountSigner(w3, cfg.private_key) if cfg.private_key else None
    orchestrator = ExecutionOrchestrator(
        registry,
        ChainClient(w3, cfg.native_asset_address),
        signer,
        ledger,
        cfg,
        price_oracle=oracle,
    )
    return ArbitrageTrader(
        OpportunityScanner(registry, cfg, price_oracle=oracle),
        RiskGate(cfg, ledger),
        orchestrator,
        cfg,
        db=init_db(cfg.sqlite_path) if cfg.sqlite_path else None,
    )


def format_opportunity(opp: Opportunity) -> str:
    """Return a one-line human summary of *opp*."""

    origin = opp.origin
    profit = from_raw_units(opp.profit_amount, origin.decimals)
    usd = f" (${opp.profit_usd:,.2f})" if opp.profit_usd is not None else ""
    return (
        f"{opp.pair} buy@{opp.buy_pool.venue} sell@{opp.sell_pool.venue} "
        f"{opp.profit_bps}bp +{profit:f} {origin.symbol}{usd} "
        f"gas={opp.gas_estimate} conf={opp.confidence:.2f}"
    )
