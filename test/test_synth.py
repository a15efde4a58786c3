import random
from collections import Counter

import pytest

from loadgen.errors import ConfigError
from loadgen.synth import (BASE_ACCEPT, IMAGE_ACCEPT, Category, RequestDescriptor, RequestSynthesizer,
                           accept_override_for, build_headers)


@pytest.mark.parametrize("path,expected", [
    ("/static/css/main.css", "text/css,*/*;q=0.1"),
    ("/static/js/app.js", "*/*"),
    ("/static/img/logo.png", IMAGE_ACCEPT),
    ("/static/img/photo.jpg", IMAGE_ACCEPT),
    ("/static/img/photo.jpeg", IMAGE_ACCEPT),
    ("/static/img/hero.webp", IMAGE_ACCEPT),
    ("/static/fonts/Inter-Regular.woff2", "*/*"),
    ("/static/data/config.json", None),
    ("/static/noext", None),
    ("/", None),
])
def test_accept_override_for(path, expected):
    assert accept_override_for(path) == expected


def test_category_weights():
    synth = RequestSynthesizer(rng=random.Random(42))
    n = 20000
    counts = Counter(synth.pick().category for _ in range(n))
    assert counts[Category.DOCUMENT] / n == pytest.approx(0.4, abs=0.02)
    assert counts[Category.STATIC] / n == pytest.approx(0.4, abs=0.02)
    assert counts[Category.INTERACTIVE] / n == pytest.approx(0.2, abs=0.02)


def test_only_static_assets_override_accept():
    synth = RequestSynthesizer(
        documents=["/page.css"],
        static_assets=["/asset.css", "/asset.json"],
        interactive=["/api/x.js"],
        rng=random.Random(3),
    )
    for _ in range(500):
        d = synth.pick()
        if d.category is Category.STATIC and d.path == "/asset.css":
            assert d.accept_override == "text/css,*/*;q=0.1"
        else:
            assert d.accept_override is None


def test_empty_category_rejected():
    with pytest.raises(ConfigError):
        RequestSynthesizer(interactive=[])


def test_build_headers(user):
    plain = build_headers(user, RequestDescriptor("/", None))
    assert plain == {
        "User-Agent": user.user_agent,
        "Accept": BASE_ACCEPT,
        "Accept-Language": user.accept_language,
        "X-Forwarded-For": user.origin_address,
    }
    css = build_headers(user, RequestDescriptor("/a.css", "text/css,*/*;q=0.1", Category.STATIC))
    assert css["Accept"] == "text/css,*/*;q=0.1"
