"""Prometheus metrics collectors and helpers.

Counters and histograms cover the scan, admission and execution stages so a
single dashboard can follow an opportunity from detection to settlement.
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server

SCANS_TOTAL = Counter("dexarb_scans_total", "Completed scanner ticks")
OPPORTUNITIES_TOTAL = Counter(
    "dexarb_opportunities_total", "Opportunities emitted by the scanner", ["pair"]
)
SKIPS_TOTAL = Counter(
    "dexarb_skips_total", "Venue/pair combinations or opportunities skipped", ["reason"]
)
RISK_DECISIONS_TOTAL = Counter(
    "dexarb_risk_decisions_total", "Risk gate decisions", ["decision", "level"]
)
EXECUTIONS_TOTAL = Counter(
    "dexarb_executions_total", "Execution attempts by outcome", ["result"]
)
PROFIT_TOTAL = Gauge(
    "dexarb_realized_profit_raw", "Realized profit in origin-asset raw units", ["asset"]
)
ERRORS_TOTAL = Counter(
    "dexarb_errors_total", "Total errors encountered", ["venue", "stage"]
)
ACTIVE_TRADES = Gauge("dexarb_active_trades", "Executions currently in flight")
SCAN_LATENCY = Histogram("dexarb_scan_latency_seconds", "Scanner tick duration")
EXECUTION_LATENCY = Histogram(
    "dexarb_execution_latency_seconds", "Execution attempt duration"
)


def start_metrics_server(port: int) -> None:
    """Start the Prometheus metrics server on the provided ``port``.

    Parameters
    ----------
    port:
        TCP port to bind the HTTP server to.
    """

    start_http_server(int(port))
