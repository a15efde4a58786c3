# loadgen/report.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
import asyncio, csv, os

from loadgen.clock import Clock
from loadgen.stats import OutcomeAggregator


def pct(bins: dict[int, int], total: int, p: float) -> float:
    """Nearest-rank percentile, in seconds, over millisecond bins."""
    if not total:
        return float("nan")
    k = int(round(p * (total - 1)))
    k = max(0, min(k, total - 1))
    seen = 0
    for ms in sorted(bins):
        seen += bins[ms]
        if seen > k:
            return ms / 1000
    return max(bins) / 1000


@dataclass(frozen=True)
class Snapshot:
    elapsed_seconds: float
    sent: int
    succeeded: int
    failed: int
    rate_limited: int
    transport_errors: int
    in_flight: int
    observed_rate: float
    status_histogram: tuple = field(default_factory=tuple)   # ((code, count), ...) ascending
    p50: float = float("nan")
    p95: float = float("nan")
    p99: float = float("nan")
    mean: float = float("nan")

    def as_row(self) -> dict:
        return {
            "elapsed_sec": round(self.elapsed_seconds, 3),
            "sent": self.sent,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rate_limited": self.rate_limited,
            "transport_errors": self.transport_errors,
            "rps": round(self.observed_rate, 3),
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "mean": self.mean,
            "statuses": " ".join(f"{code}:{count}" for code, count in self.status_histogram),
        }


def format_snapshot(snap: Snapshot, title: str = "Stats") -> str:
    lines = [
        f"---- {title} @ {datetime.now().isoformat(timespec='seconds')} ----",
        f"Total sent:     {snap.sent}",
        f"OK (2xx):       {snap.succeeded}",
        f"Fail (!2xx):    {snap.failed}",
        f"429s:           {snap.rate_limited}",
        f"Exceptions:     {snap.transport_errors}",
        f"In flight:      {snap.in_flight}",
        f"Elapsed:        {snap.elapsed_seconds:.3f}s",
        f"Observed RPS:   {snap.observed_rate:.2f}",
    ]
    if snap.p50 == snap.p50:   # not NaN
        lines.append(f"p50={snap.p50:.3f} p95={snap.p95:.3f} p99={snap.p99:.3f} mean={snap.mean:.3f}")
    lines.append("Status breakdown:")
    lines.extend(f"  {code} -> {count}" for code, count in snap.status_histogram)
    lines.append("-" * 30)
    return "\n".join(lines)


class Reporter:
    """Read-only view over an aggregator, anchored at a start timestamp."""

    def __init__(self, stats: OutcomeAggregator, clock: Clock, started_ns: int | None = None,
                 write=print):
        self.stats = stats
        self.clock = clock
        self.started_ns = clock.now_ns() if started_ns is None else started_ns
        self._write = write

    def snapshot(self) -> Snapshot:
        s = self.stats
        elapsed = (self.clock.now_ns() - self.started_ns) / 1e9
        # elapsed can be 0 on coarse clocks
        rate = s.sent / elapsed if elapsed > 1e-9 else 0.0
        return Snapshot(
            elapsed_seconds=elapsed,
            sent=s.sent,
            succeeded=s.succeeded,
            failed=s.failed,
            rate_limited=s.rate_limited,
            transport_errors=s.transport_errors,
            in_flight=s.sent - s.completed,
            observed_rate=rate,
            status_histogram=tuple(sorted(s.status_histogram.items())),
            p50=pct(s.latency_ms, s.latency_count, 0.50),
            p95=pct(s.latency_ms, s.latency_count, 0.95),
            p99=pct(s.latency_ms, s.latency_count, 0.99),
            mean=s.latency_total / s.latency_count if s.latency_count else float("nan"),
        )

    def emit(self, title: str = "Stats") -> Snapshot:
        snap = self.snapshot()
        self._write(format_snapshot(snap, title))
        return snap

    async def every(self, interval: float) -> None:
        """Emit a progress snapshot every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.emit("Progress")


def append_csv(path: str, row: dict):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    write_header = not os.path.exists(path)
    with open(path, "a", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(row.keys()))
        if write_header:
            w.writeheader()
        w.writerow(row)
