# loadgen/identity.py
from __future__ import annotations
from dataclasses import dataclass
import random

from loadgen.errors import ConfigError

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5_1) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Mobile Safari/537.36",
)

ACCEPT_LANGUAGES = (
    "en-US,en;q=0.9",
    "en-GB,en;q=0.8",
    "en-US,ar;q=0.7",
    "ar-JO,ar;q=0.9,en;q=0.5",
    "fr-FR,fr;q=0.9,en;q=0.7",
)

# TEST-NET-2, never routable
ORIGIN_PREFIX = "198.51.100."
DEFAULT_POOL_SIZE = 100


@dataclass(frozen=True)
class VirtualUser:
    user_agent: str
    accept_language: str
    origin_address: str


class IdentityPool:
    """Fixed set of virtual users; picks are uniform with replacement."""

    def __init__(self, users, rng: random.Random | None = None):
        self.users = tuple(users)
        if not self.users:
            raise ConfigError("identity pool must hold at least one user")
        self._rng = rng or random.Random()

    @classmethod
    def build(cls, count: int = DEFAULT_POOL_SIZE, rng: random.Random | None = None) -> "IdentityPool":
        if count <= 0:
            raise ConfigError(f"identity pool size must be > 0, got {count}")
        rng = rng or random.Random()
        users = [
            VirtualUser(
                user_agent=rng.choice(USER_AGENTS),
                accept_language=rng.choice(ACCEPT_LANGUAGES),
                origin_address=f"{ORIGIN_PREFIX}{10 + rng.randrange(200)}",
            )
            for _ in range(count)
        ]
        return cls(users, rng=rng)

    def __len__(self) -> int:
        return len(self.users)

    def choose(self) -> VirtualUser:
        return self._rng.choice(self.users)
