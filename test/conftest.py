import asyncio, itertools

import httpx
import pytest

from loadgen.identity import VirtualUser


class FakeClock:
    """Virtual time that only moves when the engine sleeps."""

    def __init__(self, start: int = 0):
        self.now = start

    def now_ns(self) -> int:
        return self.now

    async def sleep_until(self, deadline_ns: int) -> None:
        # let ready tasks run at the current time before moving on
        await asyncio.sleep(0)
        self.now = max(self.now, deadline_ns)


class StubTransport:
    """Answers with a cycle of outcomes; an exception instance is raised instead of returned."""

    def __init__(self, outcomes=(200,), delay: float = 0.0):
        self._outcomes = itertools.cycle(outcomes)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.peak = 0

    async def send(self, request):
        self.calls.append(request)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            outcome = next(self._outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


def refused():
    return httpx.ConnectError("connection refused")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def lines():
    return []


@pytest.fixture
def user():
    return VirtualUser("test-agent/1.0", "en-US,en;q=0.9", "198.51.100.10")


def assert_balanced(engine):
    s = engine.stats
    assert s.sent == s.succeeded + s.failed
    assert sum(s.status_histogram.values()) == s.succeeded + s.failed - s.transport_errors
    assert engine.gate.acquired == engine.gate.released >= s.sent
    assert engine.gate.available == engine.gate.capacity
