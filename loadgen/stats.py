# loadgen/stats.py
from __future__ import annotations
from collections import Counter


class OutcomeAggregator:
    """Run-scoped outcome counters.

    Completions are recorded from task done-callbacks, which asyncio runs on
    the loop thread one at a time, so each increment is atomic with respect to
    every other update and no lock is taken.

    Every dispatched request ends in exactly one of ``record_success`` or
    ``record_transport_failure``.
    """

    def __init__(self):
        self.sent = 0
        self.succeeded = 0
        self.failed = 0
        self.rate_limited = 0
        self.transport_errors = 0
        self.status_histogram: Counter[int] = Counter()
        # latency in whole milliseconds -> count; size tracks the spread of
        # latencies, not the number of requests
        self.latency_ms: Counter[int] = Counter()
        self.latency_count = 0
        self.latency_total = 0.0

    def record_dispatch(self) -> None:
        self.sent += 1

    def record_success(self, status_code: int, latency: float | None = None) -> None:
        """A response came back, whatever its status."""
        self.status_histogram[status_code] += 1
        if 200 <= status_code < 300:
            self.succeeded += 1
        else:
            self.failed += 1
            if status_code == 429:
                self.rate_limited += 1
        if latency is not None:
            self.latency_ms[round(latency * 1000)] += 1
            self.latency_count += 1
            self.latency_total += latency

    def record_transport_failure(self) -> None:
        self.failed += 1
        self.transport_errors += 1

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed
