"""Configuration management for the arbitrage engine.

This module loads environment variables from a local ``.env`` file if one is
present so that RPC endpoints and trading limits are available without manual
exports.  Values in the real environment take precedence over those in the
file.

Components receive the :data:`settings` object and read attributes at the
moment they need them, so operational tuning (for example flipping
``trading_enabled`` or raising ``min_profit_threshold_bps``) takes effect on
the next scan or assessment without a restart.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .models import Asset

NameListField = Annotated[List[str], NoDecode]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _load_env_file(path: str = ".env") -> None:
    """Populate :mod:`os.environ` with key/value pairs from *path*.

    Lines starting with ``#`` or lacking an ``=`` separator are ignored.
    Existing keys are not overwritten. Values wrapped in single or double
    quotes are unquoted to match typical ``.env`` file behavior.
    """

    try:
        for line in Path(path).read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            value = value.strip()
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            os.environ.setdefault(key.strip(), value)
    except FileNotFoundError:
        # Environment variables may be supplied via shell exports instead.
        pass


_load_env_file()


# Mainnet defaults. Override with MONITORED_ASSETS / VENUES (JSON) in the env.
DEFAULT_ASSETS: list[dict[str, Any]] = [
    {
        "address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "symbol": "WETH",
        "decimals": 18,
        "chain_id": 1,
    },
    {
        "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "symbol": "USDC",
        "decimals": 6,
        "chain_id": 1,
    },
    {
        "address": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "symbol": "USDT",
        "decimals": 6,
        "chain_id": 1,
    },
    {
        "address": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "symbol": "DAI",
        "decimals": 18,
        "chain_id": 1,
    },
]

DEFAULT_VENUES: list[dict[str, Any]] = [
    {
        "name": "uniswap_v2",
        "chain_id": 1,
        "model": "constant_product",
        "factory": "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
        "router": "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
        "fee_bps": 30,
    },
    {
        "name": "sushiswap",
        "chain_id": 1,
        "model": "constant_product",
        "factory": "0xC0AEe478e3658e2610c5F7A4A2E1777cE9e4f2Ac",
        "router": "0xd9e1cE17f2641f24aE83637ab66a2cca9C378B9F",
        "fee_bps": 30,
    },
    {
        "name": "uniswap_v3",
        "chain_id": 1,
        "model": "concentrated_liquidity",
        "factory": "0x1F98431c8aD98523631AE4a59f267346ea31F984",
        "router": "0xE592427A0AEce92De3Edee1F18E0157C05861564",
        "quoter": "0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6",
        "fee_tiers": [500, 3000, 10000],
    },
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    env: str = "dev"
    log_level: str = "INFO"
    # Optional log file path; when set, logs also write to this file.
    log_file: str | None = "data/dexarb.log"
    log_max_bytes: int = 1_000_000
    log_backup_count: int = 3

    # Chain access
    rpc_url: str | None = None
    chain_id: int = 1
    # Only the signer reads this; nothing else in the engine touches key material.
    private_key: str | None = None
    native_asset_address: str = ZERO_ADDRESS
    wrapped_native_address: str = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"

    # Trading policy
    trading_enabled: bool = False
    min_profit_threshold_bps: int = 50
    max_slippage_bps: int = 200
    max_position_size: float = 1000.0  # whole units of the input asset
    max_gas_price_wei: int = 100 * 10**9
    ai_confidence_threshold: float = 0.75  # applies to confidence oracle predictions
    max_daily_trades: int = 50
    max_concurrent_trades: int = 3
    cooldown_secs: float = 30.0
    daily_volume_multiplier: int = 10
    trusted_venues: NameListField = [
        "uniswap_v2",
        "uniswap_v3",
        "sushiswap",
        "pancakeswap",
    ]
    blacklisted_assets: NameListField = []
    blacklisted_venues: NameListField = []

    # Scanning
    scan_interval_secs: float = 2.0
    quote_amount: float = 1.0  # whole units of the first asset in each pair
    scan_concurrency: int = 8
    opportunity_queue_size: int = 100
    monitored_assets: list[dict[str, Any]] = DEFAULT_ASSETS
    venues: list[dict[str, Any]] = DEFAULT_VENUES
    # USD prices keyed by asset address, used for gas conversion and display.
    static_prices: dict[str, float] = {}

    # Execution
    rpc_timeout_secs: float = 10.0
    confirmation_timeout_secs: float = 120.0
    leg_delay_secs: float = 1.0
    swap_deadline_secs: int = 1200

    # Ambient services
    prom_port: int = 9110
    sqlite_path: str = "dexarb.db"
    discord_webhook_url: str | None = None
    discord_trade_notify: bool = True
    discord_error_notify: bool = False

    @staticmethod
    def _name_list(value: Any) -> list[str]:
        """Return venue names or addresses from a JSON array, CSV string or sequence."""

        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            try:
                value = json.loads(text) if text else []
            except ValueError:
                value = text.split(",")
            if isinstance(value, str):
                value = value.split(",")
        if not isinstance(value, (list, tuple, set)):
            value = [value]
        names = (str(entry).strip().strip("\"'") for entry in value if entry is not None)
        return [name for name in names if name]

    @field_validator(
        "trusted_venues", "blacklisted_assets", "blacklisted_venues", mode="before"
    )
    @classmethod
    def _validate_name_lists(cls, value: Any) -> list[str]:
        return cls._name_list(value)


def parse_assets(entries: Any) -> list[Asset]:
    """Return :class:`Asset` objects built from raw settings *entries*.

    Entries missing an address or with non-integer decimals are skipped so a
    single malformed JSON object does not take the whole scanner down.
    """

    if isinstance(entries, str):
        try:
            entries = json.loads(entries)
        except Exception:
            return []
    if not isinstance(entries, list):
        return []

    assets: list[Asset] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        address = str(entry.get("address") or "").strip()
        if not address:
            continue
        try:
            decimals = int(entry.get("decimals", 18))
            chain_id = int(entry.get("chain_id", 1))
        except (TypeError, ValueError):
            continue
        symbol = str(entry.get("symbol") or address[:8]).strip().upper()
        assets.append(Asset(address, symbol, decimals, chain_id))
    return assets


# Singleton settings instance populated on import.
settings = Settings()
