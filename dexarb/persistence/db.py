"""SQLite persistence layer with simple insert helpers."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from sqlite3 import Connection

from ..models import ExecutionResult, Opportunity


def init_db(db_path: str = "dexarb.db") -> Connection:
    """Create a database connection and ensure required tables exist."""
    conn = sqlite3.connect(db_path, check_same_thread=False)
    create_schema(conn)
    return conn


def create_schema(conn: Connection) -> None:
    """Create database tables if they are missing."""
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS opportunities (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            opportunity_id TEXT NOT NULL,
            ts_iso TEXT,
            chain_id INTEGER,
            pair TEXT NOT NULL,
            buy_venue TEXT NOT NULL,
            sell_venue TEXT NOT NULL,
            profit_bps INTEGER NOT NULL,
            profit_amount TEXT NOT NULL,
            input_amount TEXT NOT NULL,
            gas_estimate INTEGER,
            confidence REAL,
            profit_usd REAL
        )
        """
    )
    # Amounts are stored as TEXT: raw token units overflow SQLite INTEGER.
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS executions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            opportunity_id TEXT,
            ts_iso TEXT,
            success INTEGER NOT NULL,
            state TEXT,
            tx_hashes TEXT,
            realized_profit TEXT,
            gas_used INTEGER,
            execution_time REAL,
            error_kind TEXT,
            error TEXT
        )
        """
    )
    conn.commit()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def insert_opportunity(conn: Connection, opp: Opportunity) -> int:
    """Insert an opportunity record and return its row id."""
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO opportunities (
            opportunity_id, ts_iso, chain_id, pair, buy_venue, sell_venue,
            profit_bps, profit_amount, input_amount, gas_estimate, confidence,
            profit_usd
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            opp.opportunity_id,
            datetime.fromtimestamp(opp.detected_at, tz=timezone.utc).isoformat(),
            opp.asset_a.chain_id,
            opp.pair,
            opp.buy_pool.venue,
            opp.sell_pool.venue,
            opp.profit_bps,
            str(opp.profit_amount),
            str(opp.input_amount),
            opp.gas_estimate,
            opp.confidence,
            opp.profit_usd,
        ),
    )
    conn.commit()
    return cur.lastrowid


def insert_execution(conn: Connection, result: ExecutionResult) -> int:
    """Insert an execution result and return its row id."""
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO executions (
            opportunity_id, ts_iso, success, state, tx_hashes, realized_profit,
            gas_used, execution_time, error_kind, error
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            result.opportunity_id,
            _now_iso(),
            int(result.success),
            result.state.value if result.state else None,
            ",".join(result.transaction_hashes),
            str(result.realized_profit),
            result.gas_used,
            result.execution_time,
            result.error_kind,
            result.error,
        ),
    )
    conn.commit()
    return cur.lastrowid
