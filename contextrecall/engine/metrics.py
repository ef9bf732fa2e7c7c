"""Metrics collection for retrieval latency and cache behaviour."""

import time
from typing import Dict, List, Any
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from loguru import logger


@dataclass
class LatencyHistogram:
    """Track latency distribution with percentiles."""
    name: str
    buckets: List[float] = field(default_factory=lambda: [
        1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000  # milliseconds
    ])
    counts: Dict[float, int] = field(default_factory=dict)
    total_count: int = 0
    sum_ms: float = 0

    def __post_init__(self):
        for bucket in self.buckets:
            self.counts[bucket] = 0

    def record(self, latency_ms: float) -> None:
        """Record a latency measurement."""
        self.total_count += 1
        self.sum_ms += latency_ms

        for bucket in self.buckets:
            if latency_ms <= bucket:
                self.counts[bucket] += 1
                break
        else:
            # Over max bucket
            self.counts[self.buckets[-1]] += 1

    def get_percentile(self, percentile: float) -> float:
        """Get approximate percentile value."""
        if self.total_count == 0:
            return 0

        target_count = self.total_count * (percentile / 100)
        cumulative = 0

        for bucket in self.buckets:
            cumulative += self.counts[bucket]
            if cumulative >= target_count:
                return bucket

        return self.buckets[-1]

    def get_mean(self) -> float:
        if self.total_count == 0:
            return 0
        return self.sum_ms / self.total_count

    def to_dict(self) -> Dict[str, Any]:
        """Export metrics as dictionary."""
        return {
            "name": self.name,
            "count": self.total_count,
            "mean": round(self.get_mean(), 1),
            "p50": self.get_percentile(50),
            "p95": self.get_percentile(95),
            "p99": self.get_percentile(99),
        }


class MetricsCollector:
    """
    Per-engine metrics.
    Tracks retrieval latencies per source plus counters.
    """

    HISTOGRAMS = (
        "retrieve.total",
        "retrieve.memories",
        "retrieve.clipboard",
        "retrieve.activities",
        "retrieve.searches",
        "embedding",
        "recall.answer",
        "similar",
    )

    def __init__(self):
        self.histograms = {name: LatencyHistogram(name) for name in self.HISTOGRAMS}
        self.counters: Dict[str, int] = defaultdict(int)

    def record_latency(self, metric_name: str, latency_ms: float) -> None:
        """Record a latency measurement."""
        if metric_name in self.histograms:
            self.histograms[metric_name].record(latency_ms)
        else:
            logger.warning(f"Unknown metric: {metric_name}")

    def increment_counter(self, counter_name: str, amount: int = 1) -> None:
        self.counters[counter_name] += amount

    @contextmanager
    def timer(self, metric_name: str):
        """Time the enclosed block into a histogram."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_latency(metric_name, (time.perf_counter() - start) * 1000)

    def get_summary(self) -> Dict[str, Any]:
        return {
            "latencies": {
                name: hist.to_dict()
                for name, hist in self.histograms.items()
                if hist.total_count
            },
            "counters": dict(self.counters),
        }

    def reset(self) -> None:
        self.histograms = {name: LatencyHistogram(name) for name in self.HISTOGRAMS}
        self.counters.clear()
