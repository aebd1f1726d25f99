import pytest

pytest.importorskip("prometheus_client")

from prometheus_client import REGISTRY

from dexarb.metrics import exporter


def test_metrics_counters_and_gauge():
    before = REGISTRY.get_sample_value("dexarb_skips_total", {"reason": "metrics_test"}) or 0.0
    exporter.SKIPS_TOTAL.labels("metrics_test").inc()
    exporter.PROFIT_TOTAL.labels("TEST").set(5.0)
    exporter.start_metrics_server(8001)
    assert REGISTRY.get_sample_value("dexarb_skips_total", {"reason": "metrics_test"}) == before + 1
    assert exporter.PROFIT_TOTAL.labels("TEST")._value.get() == 5.0
