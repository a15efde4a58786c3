# loadgen/cli.py
from __future__ import annotations
from dataclasses import replace
import argparse, asyncio, contextlib, logging, signal

from loadgen.engine import DEFAULT_REPORT_INTERVAL, LoadEngine
from loadgen.errors import ConfigError
from loadgen.identity import DEFAULT_POOL_SIZE, IdentityPool
from loadgen.profile import (DEFAULT_CONCURRENCY, DEFAULT_DURATION, DEFAULT_RATE,
                             DEFAULT_TOTAL, LoadProfile, Mode)
from loadgen.report import Snapshot, append_csv
from loadgen.transport import HttpxTransport

parser = argparse.ArgumentParser(prog="loadgen", description="Synthetic HTTP load generator")
parser.add_argument("--url", default="http://localhost:8080", help="Base URL of the target")
parser.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.CLOSED.value,
                    help="closed: fixed request count, open: fixed request rate")
parser.add_argument("-t", "--total", type=int, default=DEFAULT_TOTAL)
parser.add_argument("-r", "--rate", type=float, default=DEFAULT_RATE, help="Target requests/second (open)")
parser.add_argument("-c", "--concurrency", type=int, default=DEFAULT_CONCURRENCY)
parser.add_argument("-d", "--duration", type=float, default=DEFAULT_DURATION,
                    help="Seconds to run (open); 0 runs until Ctrl+C")
parser.add_argument("--users", type=int, default=DEFAULT_POOL_SIZE, help="Virtual user pool size")
parser.add_argument("--report-interval", type=float, default=DEFAULT_REPORT_INTERVAL,
                    help="Seconds between progress reports (open); 0 disables")
parser.add_argument("--timeout", type=float, default=30.0, help="Per-request timeout in seconds")
parser.add_argument("--csv", type=str, default=None, help="Append the final stats row to this CSV")
parser.add_argument("--sweep", action="store_true", help="Repeat the run over rising concurrency levels")
parser.add_argument("-v", "--verbose", action="store_true")

SWEEP_LEVELS = [1, 2, 4, 8, 16, 32, 64]


def build_profile(args) -> LoadProfile:
    if args.mode == Mode.OPEN.value:
        return LoadProfile.open(args.rate, args.concurrency, args.duration)
    return LoadProfile.closed(args.total, args.concurrency)


def sweep_levels(max_concurrency: int) -> list[int]:
    return [c for c in SWEEP_LEVELS if c <= max_concurrency] or [max_concurrency]


def print_banner(profile: LoadProfile, url: str):
    print(f"Base URL:          {url}")
    print(f"Mode:              {profile.mode.value}")
    if profile.mode is Mode.OPEN:
        duration = profile.duration_seconds if profile.bounded else "infinite (Ctrl+C to stop)"
        print(f"Target RPS:        {profile.target_rate:g}")
        print(f"Duration seconds:  {duration}")
    else:
        print(f"Total requests:    {profile.total_requests}")
    print(f"Max concurrency:   {profile.max_concurrency}")
    print()


@contextlib.contextmanager
def stop_on_signals(engine: LoadEngine):
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        # not available on every platform; Ctrl+C then falls back to KeyboardInterrupt
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, engine.stop)
            installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def run(profile: LoadProfile, url: str, identities: IdentityPool,
              timeout: float = 30.0, report_interval: float = DEFAULT_REPORT_INTERVAL) -> tuple[Snapshot, bool]:
    """Run one profile; also returns whether the operator stopped it."""
    print_banner(profile, url)
    async with HttpxTransport(url, profile.max_concurrency, timeout=timeout) as transport:
        engine = LoadEngine(profile, transport, identities=identities,
                            report_interval=report_interval)
        with stop_on_signals(engine):
            snap = await engine.run()
    return snap, engine.stopping


def main(argv=None):
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        profile = build_profile(args)
        identities = IdentityPool.build(args.users)
        if args.timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {args.timeout}")
        if args.report_interval < 0:
            raise ConfigError(f"report interval must be >= 0, got {args.report_interval}")
    except ConfigError as e:
        parser.error(str(e))

    async def _main():
        levels = sweep_levels(profile.max_concurrency) if args.sweep else [profile.max_concurrency]
        for c in levels:
            prof = replace(profile, max_concurrency=c)
            snap, stopped = await run(prof, args.url, identities,
                                     timeout=args.timeout, report_interval=args.report_interval)
            if args.csv:
                append_csv(args.csv, {"mode": prof.mode.value, "concurrency": c, **snap.as_row()})
            if stopped:
                break

    asyncio.run(_main())


if __name__ == "__main__":
    main()
