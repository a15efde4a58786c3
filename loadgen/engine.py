# loadgen/engine.py
"""Admission-controlled dispatch loop.

One engine instance drives one run. Closed-loop runs issue a fixed number of
requests as fast as the admission gate allows; open-loop runs pace sends on a
fixed interval and keep pacing even when responses are slow, since a full gate
only delays the next acquire.

Every send is an asyncio task. Its done-callback records the outcome and
releases the admission token, and it runs for every way a task can finish
(result, exception, cancellation), so tokens cannot leak.
"""
from __future__ import annotations
from enum import Enum
import asyncio, functools, logging

from loadgen.admission import AdmissionGate, AdmissionToken
from loadgen.clock import Clock, MonotonicClock
from loadgen.errors import ConfigError
from loadgen.identity import IdentityPool
from loadgen.profile import LoadProfile, Mode
from loadgen.report import Reporter, Snapshot
from loadgen.stats import OutcomeAggregator
from loadgen.synth import OutboundRequest, RequestSynthesizer, build_headers
from loadgen.transport import Transport

log = logging.getLogger(__name__)

DEFAULT_REPORT_INTERVAL = 5.0
DEFAULT_DRAIN_POLL = 0.2


class Phase(str, Enum):
    IDLE = "idle"
    PRIMING = "priming"          # open loop only
    PACING = "pacing"            # open loop only
    DISPATCHING = "dispatching"  # closed loop only
    DRAINING = "draining"
    DONE = "done"


class LoadEngine:
    def __init__(self, profile: LoadProfile, transport: Transport, *,
                 identities: IdentityPool | None = None,
                 synthesizer: RequestSynthesizer | None = None,
                 clock: Clock | None = None,
                 stats: OutcomeAggregator | None = None,
                 report_interval: float | None = DEFAULT_REPORT_INTERVAL,
                 drain_poll: float = DEFAULT_DRAIN_POLL,
                 write=print):
        if report_interval is not None and report_interval < 0:
            raise ConfigError(f"report_interval must be >= 0, got {report_interval}")
        if drain_poll <= 0:
            raise ConfigError(f"drain_poll must be > 0, got {drain_poll}")
        self.profile = profile
        self.transport = transport
        self.identities = identities or IdentityPool.build()
        self.synthesizer = synthesizer or RequestSynthesizer()
        self.clock = clock or MonotonicClock()
        self.stats = stats or OutcomeAggregator()
        self.gate = AdmissionGate(profile.max_concurrency)
        self.report_interval = report_interval
        self.drain_poll = drain_poll
        self.reporter: Reporter | None = None
        self.phase = Phase.IDLE
        self._write = write
        self._stop_requested = False
        self._dispatcher: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def stopping(self) -> bool:
        return self._stop_requested

    def _enter(self, phase: Phase) -> None:
        log.info("%s -> %s", self.phase.value, phase.value)
        self.phase = phase

    async def run(self) -> Snapshot:
        if self.phase is not Phase.IDLE:
            raise RuntimeError("a LoadEngine runs once; build a new one")
        self.reporter = Reporter(self.stats, self.clock, write=self._write)
        if self.profile.mode is Mode.CLOSED:
            self._enter(Phase.DISPATCHING)
            body = self._run_closed()
        else:
            self._enter(Phase.PRIMING)
            body = self._run_open()

        self._dispatcher = asyncio.create_task(body)
        try:
            await asyncio.wait({self._dispatcher})
        except asyncio.CancelledError:
            self._dispatcher.cancel()
            for task in list(self._pending):
                task.cancel()
            raise

        self._enter(Phase.DRAINING)
        log.info("dispatch stopped, waiting for %d in-flight requests", self.gate.in_flight)
        await self.gate.wait_drained(self.drain_poll)
        self._enter(Phase.DONE)
        snap = self.reporter.emit("Final")
        if not self._dispatcher.cancelled():
            self._dispatcher.result()
        return snap

    def stop(self) -> None:
        """Stop issuing requests; in-flight requests finish normally."""
        if self._stop_requested:
            return
        self._stop_requested = True
        log.info("stop requested")
        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()

    async def _run_closed(self) -> None:
        for _ in range(self.profile.total_requests):
            if self._stop_requested:
                break
            await self._dispatch_one()

    async def _run_open(self) -> None:
        interval_ns = self.profile.interval_ns
        limit_ns = int(self.profile.duration_seconds * 1e9)
        cutoff_ns = self.reporter.started_ns + limit_ns if limit_ns else None
        ticker = None
        if self.report_interval:
            ticker = asyncio.create_task(self.reporter.every(self.report_interval))
        self._enter(Phase.PACING)
        next_fire = self.clock.now_ns()
        try:
            while not self._stop_requested:
                now = self.clock.now_ns()
                if cutoff_ns is not None and now >= cutoff_ns:
                    break
                if now < next_fire:
                    await self.clock.sleep_until(next_fire)
                    continue
                # advance by one interval from the old deadline, not from now,
                # so a late send does not shift every later one
                next_fire += interval_ns
                if not await self._dispatch_one(cutoff_ns):
                    break
        finally:
            if ticker is not None:
                ticker.cancel()

    async def _dispatch_one(self, cutoff_ns: int | None = None) -> bool:
        token = await self.gate.acquire()
        # a full gate can hold us past the end of the run
        if cutoff_ns is not None and self.clock.now_ns() >= cutoff_ns:
            token.release()
            return False
        try:
            request = self._synthesize()
        except BaseException:
            token.release()
            raise
        self.stats.record_dispatch()
        task = asyncio.create_task(self.transport.send(request))
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._complete, token, self.clock.now_ns()))
        return True

    def _synthesize(self) -> OutboundRequest:
        user = self.identities.choose()
        descriptor = self.synthesizer.pick()
        return OutboundRequest(descriptor.path, build_headers(user, descriptor))

    def _complete(self, token: AdmissionToken, sent_ns: int, task: asyncio.Task) -> None:
        self._pending.discard(task)
        with token:
            if task.cancelled():
                self.stats.record_transport_failure()
                return
            exc = task.exception()
            if exc is not None:
                log.debug("transport failure: %r", exc)
                self.stats.record_transport_failure()
                return
            status = task.result()
            self.stats.record_success(status, (self.clock.now_ns() - sent_ns) / 1e9)
            if status == 429:
                log.debug("rate limited (%d so far)", self.stats.rate_limited)
