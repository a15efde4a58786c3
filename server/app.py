from __future__ import annotations
from dataclasses import dataclass
import random, time

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQS = Counter("http_requests_total", "Total number of HTTP requests", ["path", "status"])
LAT = Histogram("http_request_latency_seconds", "Latency of HTTP requests in seconds", ["path"])


@dataclass(frozen=True)
class SiteConfig:
    requests_per_window: int = 50   # per origin; 0 disables limiting
    window_seconds: float = 1.0
    error_rate: float = 0.0         # share of requests answered with 500


class Page(BaseModel):
    path: str
    origin: str


class FixedWindowLimiter:
    """Per-origin request counts that reset every window."""

    def __init__(self, limit: int, window: float, clock=time.monotonic):
        self.limit = limit
        self.window = window
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def allow(self, origin: str) -> bool:
        if self.limit <= 0:
            return True
        now = self.clock()
        start, count = self._windows.get(origin, (now, 0))
        if now - start >= self.window:
            start, count = now, 0
        count += 1
        self._windows[origin] = (start, count)
        return count <= self.limit


def create_app(cfg: SiteConfig | None = None, rng: random.Random | None = None) -> FastAPI:
    cfg = cfg or SiteConfig()
    rng = rng or random.Random()
    limiter = FixedWindowLimiter(cfg.requests_per_window, cfg.window_seconds)
    app = FastAPI()
    app.state.config = cfg
    app.state.limiter = limiter

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/{path:path}", response_model=Page)
    async def page(path: str, request: Request):
        start = time.time()
        status = 200
        origin = request.headers.get("x-forwarded-for") or (request.client.host if request.client else "-")
        try:
            if not limiter.allow(origin):
                status = 429
                return JSONResponse({"error": "rate limited"}, status_code=429)
            if cfg.error_rate and rng.random() < cfg.error_rate:
                status = 500
                return JSONResponse({"error": "injected failure"}, status_code=500)
            return Page(path="/" + path, origin=origin)
        finally:
            latency = time.time() - start
            LAT.labels(path=request.url.path).observe(latency)
            REQS.labels(path=request.url.path, status=status).inc()

    return app


app = create_app()
