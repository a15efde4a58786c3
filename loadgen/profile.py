# loadgen/profile.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum

from loadgen.errors import ConfigError

DEFAULT_TOTAL = 1000
DEFAULT_RATE = 500.0
DEFAULT_CONCURRENCY = 200
DEFAULT_DURATION = 0.0   # 0 = run until stopped


class Mode(str, Enum):
    CLOSED = "closed"   # fixed request count
    OPEN = "open"       # fixed request rate


@dataclass(frozen=True)
class LoadProfile:
    mode: Mode = Mode.CLOSED
    max_concurrency: int = DEFAULT_CONCURRENCY
    total_requests: int = DEFAULT_TOTAL
    target_rate: float = DEFAULT_RATE
    duration_seconds: float = DEFAULT_DURATION

    def __post_init__(self):
        if not isinstance(self.mode, Mode):
            try:
                object.__setattr__(self, "mode", Mode(self.mode))
            except ValueError:
                raise ConfigError(f"unknown mode: {self.mode!r}") from None
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.mode is Mode.CLOSED and self.total_requests < 1:
            raise ConfigError(f"total_requests must be >= 1, got {self.total_requests}")
        if self.mode is Mode.OPEN:
            if self.target_rate <= 0:
                raise ConfigError(f"target_rate must be > 0, got {self.target_rate}")
            if self.duration_seconds < 0:
                raise ConfigError(f"duration_seconds must be >= 0, got {self.duration_seconds}")

    @classmethod
    def closed(cls, total_requests: int = DEFAULT_TOTAL,
               max_concurrency: int = DEFAULT_CONCURRENCY) -> "LoadProfile":
        return cls(Mode.CLOSED, max_concurrency=max_concurrency, total_requests=total_requests)

    @classmethod
    def open(cls, target_rate: float = DEFAULT_RATE,
             max_concurrency: int = DEFAULT_CONCURRENCY,
             duration_seconds: float = DEFAULT_DURATION) -> "LoadProfile":
        return cls(Mode.OPEN, max_concurrency=max_concurrency,
                   target_rate=target_rate, duration_seconds=duration_seconds)

    @property
    def bounded(self) -> bool:
        return self.mode is Mode.CLOSED or self.duration_seconds > 0

    @property
    def interval_ns(self) -> int:
        """Spacing between open-loop sends, never below 1 ns."""
        return max(1, int(1e9 / self.target_rate))
