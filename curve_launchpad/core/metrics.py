"""
Metrics collection for the curve launchpad
Tracks trade throughput, rejections by reason, settlement volume and latency
"""

import statistics
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple


LabelKey = Tuple[str, Tuple[Tuple[str, str], ...]]


@dataclass
class HistogramStats:
    """Statistical summary of latency samples"""
    operation: str
    count: int
    p50: float
    p95: float
    p99: float
    mean: float
    min: float
    max: float


class MetricsCollector:
    """
    In-process counters, gauges and latency histograms

    Thread-safe: trades on different curves run concurrently and all record
    into the same collector.
    """

    def __init__(self, enable_histogram: bool = True, histogram_buckets: Optional[List[float]] = None):
        """
        Initialize metrics collector

        Args:
            enable_histogram: Whether to keep latency samples
            histogram_buckets: Latency buckets (ms) reported by export_metrics()
        """
        self.enable_histogram = enable_histogram
        self.histogram_buckets = histogram_buckets or [0.1, 0.5, 1, 5, 10, 50, 100]

        self._lock = threading.Lock()
        self._latencies: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=10000))
        self._counters: Dict[LabelKey, int] = defaultdict(int)
        self._gauges: Dict[LabelKey, float] = {}

    @staticmethod
    def _key(metric_name: str, labels: Optional[Dict[str, str]]) -> LabelKey:
        return metric_name, tuple(sorted((labels or {}).items()))

    def record_latency(self, operation: str, latency_ms: float) -> None:
        """Record one latency sample and count the operation"""
        with self._lock:
            if self.enable_histogram:
                self._latencies[operation].append(latency_ms)
            self._counters[self._key(f"{operation}_count", None)] += 1

    def increment_counter(
        self,
        metric_name: str,
        value: int = 1,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """Increment a counter, optionally labelled (e.g. by reject reason)"""
        with self._lock:
            self._counters[self._key(metric_name, labels)] += value

    def set_gauge(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        """Set a gauge value"""
        with self._lock:
            self._gauges[self._key(metric_name, labels)] = value

    def get_counter(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> int:
        """Get current counter value"""
        with self._lock:
            return self._counters.get(self._key(metric_name, labels), 0)

    def get_gauge(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Get current gauge value"""
        with self._lock:
            return self._gauges.get(self._key(metric_name, labels), 0.0)

    def record_trade(self, direction: str, sol_amount: int, token_amount: int, fee: int) -> None:
        """Count an accepted trade and its settlement volume"""
        labels = {"direction": direction}
        self.increment_counter("trades_accepted", labels=labels)
        self.increment_counter("sol_volume_lamports", sol_amount, labels=labels)
        self.increment_counter("token_volume", token_amount, labels=labels)
        self.increment_counter("fees_collected_lamports", fee)

    def record_rejection(self, direction: str, reason: str) -> None:
        """Count a rejected trade by reason"""
        self.increment_counter("trades_rejected", labels={"direction": direction, "reason": reason})

    def get_histogram_stats(self, operation: str) -> Optional[HistogramStats]:
        """
        Get latency statistics for an operation

        Returns:
            HistogramStats or None if no samples were recorded
        """
        with self._lock:
            samples = sorted(self._latencies.get(operation, ()))

        if not samples:
            return None

        return HistogramStats(
            operation=operation,
            count=len(samples),
            p50=self._percentile(samples, 50),
            p95=self._percentile(samples, 95),
            p99=self._percentile(samples, 99),
            mean=statistics.mean(samples),
            min=samples[0],
            max=samples[-1]
        )

    def export_metrics(self) -> Dict:
        """
        Export all metrics as a JSON-serializable dict

        Labelled series are rendered as `name{label=value,...}`.
        """
        with self._lock:
            counters = {self._render(k): v for k, v in self._counters.items()}
            gauges = {self._render(k): v for k, v in self._gauges.items()}
            operations = list(self._latencies.keys())

        histograms = {}
        for operation in operations:
            stats = self.get_histogram_stats(operation)
            if stats:
                histograms[operation] = {
                    "count": stats.count,
                    "p50": stats.p50,
                    "p95": stats.p95,
                    "p99": stats.p99,
                    "mean": stats.mean,
                    "min": stats.min,
                    "max": stats.max,
                    "buckets": self._bucket_counts(operation),
                }

        return {"counters": counters, "gauges": gauges, "histograms": histograms}

    def reset(self) -> None:
        """Reset all metrics (useful for testing)"""
        with self._lock:
            self._latencies.clear()
            self._counters.clear()
            self._gauges.clear()

    def _bucket_counts(self, operation: str) -> Dict[str, int]:
        with self._lock:
            samples = list(self._latencies.get(operation, ()))
        return {
            f"le_{bucket}": sum(1 for s in samples if s <= bucket)
            for bucket in self.histogram_buckets
        }

    @staticmethod
    def _render(key: LabelKey) -> str:
        name, labels = key
        if not labels:
            return name
        rendered = ",".join(f"{k}={v}" for k, v in labels)
        return f"{name}{{{rendered}}}"

    @staticmethod
    def _percentile(sorted_data: List[float], percentile: float) -> float:
        """Linear-interpolated percentile of sorted samples"""
        if len(sorted_data) == 1:
            return sorted_data[0]

        index = (percentile / 100) * (len(sorted_data) - 1)
        lower = int(index)
        upper = lower + 1

        if upper >= len(sorted_data):
            return sorted_data[-1]

        weight = index - lower
        return sorted_data[lower] * (1 - weight) + sorted_data[upper] * weight


class LatencyTimer:
    """Context manager for measuring operation latency"""

    def __init__(self, metrics: MetricsCollector, operation: str):
        self.metrics = metrics
        self.operation = operation
        self.start_time: Optional[float] = None
        self.latency_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.latency_ms = (time.perf_counter() - self.start_time) * 1000
            self.metrics.record_latency(self.operation, self.latency_ms)


# Global metrics instance (initialized by the entry point)
_global_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def init_metrics(enable_histogram: bool = True, histogram_buckets: Optional[List[float]] = None) -> MetricsCollector:
    """Initialize global metrics collector"""
    global _global_metrics
    _global_metrics = MetricsCollector(enable_histogram, histogram_buckets)
    return _global_metrics
