import random

import httpx
import pytest

from conftest import assert_balanced
from loadgen.engine import LoadEngine
from loadgen.identity import IdentityPool
from loadgen.profile import LoadProfile
from loadgen.synth import RequestSynthesizer
from loadgen.transport import HttpxTransport
from server.app import FixedWindowLimiter, SiteConfig, create_app


def asgi_transport(cfg: SiteConfig, max_connections: int = 10) -> HttpxTransport:
    app = create_app(cfg, rng=random.Random(0))
    return HttpxTransport("http://testserver", max_connections,
                          transport=httpx.ASGITransport(app=app))


@pytest.mark.asyncio
async def test_engine_against_site(lines):
    async with asgi_transport(SiteConfig(requests_per_window=0)) as transport:
        engine = LoadEngine(LoadProfile.closed(total_requests=40, max_concurrency=8), transport,
                            identities=IdentityPool.build(5, rng=random.Random(1)),
                            synthesizer=RequestSynthesizer(rng=random.Random(1)),
                            report_interval=0, drain_poll=0.01, write=lines.append)
        snap = await engine.run()

    assert snap.status_histogram == ((200, 40),)
    assert_balanced(engine)


@pytest.mark.asyncio
async def test_single_origin_gets_rate_limited(lines, user):
    async with asgi_transport(SiteConfig(requests_per_window=5, window_seconds=60)) as transport:
        engine = LoadEngine(LoadProfile.closed(total_requests=20, max_concurrency=4), transport,
                            identities=IdentityPool([user]),
                            report_interval=0, drain_poll=0.01, write=lines.append)
        snap = await engine.run()

    assert dict(snap.status_histogram) == {200: 5, 429: 15}
    assert snap.rate_limited == 15
    assert snap.failed == 15
    assert_balanced(engine)


@pytest.mark.asyncio
async def test_injected_errors(lines):
    async with asgi_transport(SiteConfig(requests_per_window=0, error_rate=1.0)) as transport:
        engine = LoadEngine(LoadProfile.closed(total_requests=10, max_concurrency=2), transport,
                            report_interval=0, drain_poll=0.01, write=lines.append)
        snap = await engine.run()

    assert snap.status_histogram == ((500, 10),)
    assert snap.rate_limited == 0


@pytest.mark.asyncio
async def test_page_echoes_path_and_origin(user):
    async with asgi_transport(SiteConfig()) as transport:
        r = await transport.client.get("/static/css/main.css", headers={"X-Forwarded-For": user.origin_address})
        health = await transport.client.get("/health")
        metrics = await transport.client.get("/metrics")

    assert r.json() == {"path": "/static/css/main.css", "origin": user.origin_address}
    assert health.json() == {"ok": True}
    assert "http_requests_total" in metrics.text


@pytest.mark.asyncio
async def test_connection_errors_count_as_transport_failures(lines):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with HttpxTransport("http://testserver", 4, transport=httpx.MockTransport(refuse)) as transport:
        engine = LoadEngine(LoadProfile.closed(total_requests=6, max_concurrency=2), transport,
                            report_interval=0, drain_poll=0.01, write=lines.append)
        snap = await engine.run()

    assert snap.transport_errors == 6
    assert snap.status_histogram == ()
    assert_balanced(engine)


def test_fixed_window_limiter_resets():
    now = [0.0]
    limiter = FixedWindowLimiter(2, 1.0, clock=lambda: now[0])
    assert [limiter.allow("a") for _ in range(3)] == [True, True, False]
    assert limiter.allow("b")
    now[0] = 1.5
    assert limiter.allow("a")
