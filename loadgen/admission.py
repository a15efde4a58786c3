# loadgen/admission.py
from __future__ import annotations
import asyncio

from loadgen.errors import ConfigError


class AdmissionToken:
    """One unit of in-flight capacity. Released exactly once."""

    __slots__ = ("_gate", "_held")

    def __init__(self, gate: "AdmissionGate"):
        self._gate = gate
        self._held = True

    @property
    def held(self) -> bool:
        return self._held

    def release(self) -> None:
        if not self._held:
            raise RuntimeError("admission token released twice")
        self._held = False
        self._gate._give_back()

    def __enter__(self) -> "AdmissionToken":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class AdmissionGate:
    """Counting gate that bounds the number of requests in flight.

    Capacity is fixed for the gate's lifetime. ``available == capacity``
    means nothing is outstanding.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigError(f"gate capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.acquired = 0
        self.released = 0
        self._sem = asyncio.Semaphore(capacity)

    @property
    def in_flight(self) -> int:
        return self.acquired - self.released

    @property
    def available(self) -> int:
        return self.capacity - self.in_flight

    @property
    def drained(self) -> bool:
        return self.available == self.capacity

    async def acquire(self) -> AdmissionToken:
        await self._sem.acquire()
        self.acquired += 1
        return AdmissionToken(self)

    def _give_back(self) -> None:
        self.released += 1
        self._sem.release()

    async def wait_drained(self, poll_interval: float = 0.2) -> None:
        while not self.drained:
            await asyncio.sleep(poll_interval)
