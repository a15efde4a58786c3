import random

import pytest

from loadgen.errors import ConfigError
from loadgen.identity import ACCEPT_LANGUAGES, ORIGIN_PREFIX, USER_AGENTS, IdentityPool, VirtualUser


def test_build_default_size():
    pool = IdentityPool.build()
    assert len(pool) == 100


def test_users_drawn_from_catalogs():
    pool = IdentityPool.build(50, rng=random.Random(7))
    for u in pool.users:
        assert u.user_agent in USER_AGENTS
        assert u.accept_language in ACCEPT_LANGUAGES
        assert u.origin_address.startswith(ORIGIN_PREFIX)
        assert 10 <= int(u.origin_address.rsplit(".", 1)[1]) <= 209


def test_users_are_immutable():
    u = IdentityPool.build(1).users[0]
    with pytest.raises(AttributeError):
        u.user_agent = "other"


@pytest.mark.parametrize("count", [0, -3])
def test_rejects_non_positive_size(count):
    with pytest.raises(ConfigError):
        IdentityPool.build(count)


def test_choose_with_replacement():
    users = [VirtualUser("a", "en", "198.51.100.10"), VirtualUser("b", "fr", "198.51.100.11")]
    pool = IdentityPool(users, rng=random.Random(1))
    picks = [pool.choose() for _ in range(200)]
    assert set(picks) == set(users)
