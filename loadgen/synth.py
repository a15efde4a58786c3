# loadgen/synth.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import random

from loadgen.errors import ConfigError
from loadgen.identity import VirtualUser

DOCUMENT_PATHS = ("/", "/home", "/index", "/dashboard", "/login", "/admin")
STATIC_ASSET_PATHS = (
    "/static/css/main.css",
    "/static/css/app.css",
    "/static/js/app.js",
    "/static/js/chunk-vendors.js",
    "/static/img/logo.png",
    "/static/fonts/Inter-Regular.woff2",
)
INTERACTIVE_PATHS = (
    "/profile",
    "/settings",
    "/search?q=load",
    "/notifications",
    "/api/data",
    "/api/activity",
    "/api/pay",
    "/help",
)

# browser default for page navigations
BASE_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8"
)

IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/png,*/*;q=0.8"
ACCEPT_BY_EXTENSION = {
    ".css": "text/css,*/*;q=0.1",
    ".js": "*/*",
    ".png": IMAGE_ACCEPT,
    ".jpg": IMAGE_ACCEPT,
    ".jpeg": IMAGE_ACCEPT,
    ".webp": IMAGE_ACCEPT,
    ".woff2": "*/*",
}

# cumulative thresholds: 40% documents, 40% static, 20% interactive
DOCUMENT_CUTOFF = 0.4
STATIC_CUTOFF = 0.8


class Category(str, Enum):
    DOCUMENT = "document"
    STATIC = "static"
    INTERACTIVE = "interactive"


@dataclass(frozen=True)
class RequestDescriptor:
    path: str
    accept_override: str | None = None
    category: Category = Category.DOCUMENT


@dataclass(frozen=True)
class OutboundRequest:
    path: str
    headers: dict


def accept_override_for(path: str) -> str | None:
    name = path.split("?", 1)[0].rsplit("/", 1)[-1].lower()
    dot = name.rfind(".")
    if dot < 0:
        return None
    return ACCEPT_BY_EXTENSION.get(name[dot:])


def build_headers(user: VirtualUser, descriptor: RequestDescriptor,
                  base_accept: str = BASE_ACCEPT) -> dict:
    return {
        "User-Agent": user.user_agent,
        "Accept": descriptor.accept_override or base_accept,
        "Accept-Language": user.accept_language,
        "X-Forwarded-For": user.origin_address,
    }


class RequestSynthesizer:
    """Draws one request per dispatch from the weighted path catalog.

    Every draw is independent, so concurrent callers need no coordination.
    """

    def __init__(self,
                 documents=DOCUMENT_PATHS,
                 static_assets=STATIC_ASSET_PATHS,
                 interactive=INTERACTIVE_PATHS,
                 rng: random.Random | None = None):
        self.documents = tuple(documents)
        self.static_assets = tuple(static_assets)
        self.interactive = tuple(interactive)
        for name, paths in (("documents", self.documents),
                            ("static_assets", self.static_assets),
                            ("interactive", self.interactive)):
            if not paths:
                raise ConfigError(f"path category {name!r} is empty")
        self._rng = rng or random.Random()

    def pick(self) -> RequestDescriptor:
        r = self._rng.random()
        if r < DOCUMENT_CUTOFF:
            return RequestDescriptor(self._rng.choice(self.documents), None, Category.DOCUMENT)
        if r < STATIC_CUTOFF:
            path = self._rng.choice(self.static_assets)
            return RequestDescriptor(path, accept_override_for(path), Category.STATIC)
        return RequestDescriptor(self._rng.choice(self.interactive), None, Category.INTERACTIVE)
