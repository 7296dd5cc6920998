"""
Unit tests for Metrics System (core/metrics.py)

Tests:
- Latency recording and histogram calculation
- Counters and gauges, with and without labels
- Trade and rejection accounting
- Metrics export
- LatencyTimer context manager
"""

import time

import pytest

from curve_launchpad.core.metrics import LatencyTimer, MetricsCollector, get_metrics, init_metrics


class TestMetricsCollector:
    """Test metrics collection functionality"""

    def test_record_latency(self, metrics_collector):
        """Test recording latency measurements"""
        metrics_collector.record_latency("trade_buy", 100.5)
        metrics_collector.record_latency("trade_buy", 200.3)
        metrics_collector.record_latency("trade_buy", 150.7)

        stats = metrics_collector.get_histogram_stats("trade_buy")

        assert stats is not None
        assert stats.count == 3
        assert stats.min == pytest.approx(100.5, rel=0.01)
        assert stats.max == pytest.approx(200.3, rel=0.01)
        assert metrics_collector.get_counter("trade_buy_count") == 3

    def test_percentile_calculations(self, metrics_collector):
        """Test p50, p95, p99 percentile calculations"""
        for i in range(100):
            metrics_collector.record_latency("test_op", float(i))

        stats = metrics_collector.get_histogram_stats("test_op")

        assert stats.p50 == pytest.approx(49.5, rel=0.1)
        assert stats.p95 == pytest.approx(94.05, rel=0.1)
        assert stats.p99 == pytest.approx(98.01, rel=0.1)
        assert stats.mean == pytest.approx(49.5, rel=0.1)

    def test_histogram_disabled(self):
        collector = MetricsCollector(enable_histogram=False)

        collector.record_latency("trade_sell", 5.0)

        assert collector.get_histogram_stats("trade_sell") is None
        assert collector.get_counter("trade_sell_count") == 1

    def test_increment_counter(self, metrics_collector):
        """Test counter incrementing"""
        metrics_collector.increment_counter("test_counter")
        assert metrics_collector.get_counter("test_counter") == 1

        metrics_collector.increment_counter("test_counter", value=5)
        assert metrics_collector.get_counter("test_counter") == 6

    def test_counter_with_labels(self, metrics_collector):
        """Test counters with label support"""
        metrics_collector.increment_counter("errors", labels={"reason": "zero_amount"})
        metrics_collector.increment_counter("errors", labels={"reason": "zero_amount"})
        metrics_collector.increment_counter("errors", labels={"reason": "curve_completed"})

        assert metrics_collector.get_counter("errors", labels={"reason": "zero_amount"}) == 2
        assert metrics_collector.get_counter("errors", labels={"reason": "curve_completed"}) == 1
        assert metrics_collector.get_counter("errors") == 0

    def test_set_gauge(self, metrics_collector):
        """Test gauge setting"""
        metrics_collector.set_gauge("curves_live", 5)
        metrics_collector.set_gauge("curves_live", 10)

        assert metrics_collector.get_gauge("curves_live") == 10

    def test_record_trade(self, metrics_collector):
        metrics_collector.record_trade("buy", 1_000, 35_000, 10)
        metrics_collector.record_trade("sell", 500, 17_000, 5)

        assert metrics_collector.get_counter("trades_accepted", labels={"direction": "buy"}) == 1
        assert metrics_collector.get_counter("sol_volume_lamports", labels={"direction": "sell"}) == 500
        assert metrics_collector.get_counter("token_volume", labels={"direction": "buy"}) == 35_000
        assert metrics_collector.get_counter("fees_collected_lamports") == 15

    def test_record_rejection(self, metrics_collector):
        metrics_collector.record_rejection("sell", "slippage_exceeded")

        assert metrics_collector.get_counter(
            "trades_rejected", labels={"direction": "sell", "reason": "slippage_exceeded"}
        ) == 1

    def test_export_metrics(self, metrics_collector):
        """Test metrics export to JSON"""
        metrics_collector.increment_counter("requests", value=100)
        metrics_collector.record_rejection("buy", "zero_amount")
        metrics_collector.set_gauge("curves_live", 3)
        metrics_collector.record_latency("trade_buy", 0.3)
        metrics_collector.record_latency("trade_buy", 7.0)

        exported = metrics_collector.export_metrics()

        assert exported["counters"]["requests"] == 100
        assert exported["counters"]["trades_rejected{direction=buy,reason=zero_amount}"] == 1
        assert exported["gauges"]["curves_live"] == 3
        histogram = exported["histograms"]["trade_buy"]
        assert histogram["count"] == 2
        assert histogram["buckets"]["le_0.5"] == 1
        assert histogram["buckets"]["le_10"] == 2

    def test_histogram_stats_empty(self, metrics_collector):
        """Test getting stats for non-existent operation"""
        assert metrics_collector.get_histogram_stats("nonexistent") is None

    def test_reset_metrics(self, metrics_collector):
        """Test resetting all metrics"""
        metrics_collector.increment_counter("test", value=10)
        metrics_collector.set_gauge("gauge", 5.0)
        metrics_collector.record_latency("latency", 100.0)

        metrics_collector.reset()

        assert metrics_collector.get_counter("test") == 0
        assert metrics_collector.get_gauge("gauge") == 0.0
        assert metrics_collector.get_histogram_stats("latency") is None

    def test_histogram_max_size(self, metrics_collector):
        """Test histogram size limit (maxlen=10000)"""
        for i in range(15000):
            metrics_collector.record_latency("test_op", float(i))

        stats = metrics_collector.get_histogram_stats("test_op")

        assert stats.count == 10000
        assert stats.min >= 5000.0


class TestLatencyTimer:
    """Test LatencyTimer context manager"""

    def test_latency_timer_basic(self, metrics_collector):
        """Test basic latency timer usage"""
        with LatencyTimer(metrics_collector, "test_operation") as timer:
            time.sleep(0.01)

        stats = metrics_collector.get_histogram_stats("test_operation")
        assert stats.count == 1
        assert timer.latency_ms >= 10.0

    def test_latency_timer_exception(self, metrics_collector):
        """Test that latency is still recorded on exception"""
        with pytest.raises(ValueError):
            with LatencyTimer(metrics_collector, "failing_op"):
                raise ValueError("boom")

        assert metrics_collector.get_histogram_stats("failing_op").count == 1


def test_global_metrics_instance():
    collector = init_metrics(enable_histogram=False)

    assert get_metrics() is collector
    assert collector.enable_histogram is False
