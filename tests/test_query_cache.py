from __future__ import annotations

import sys
from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.infrastructure import cache as cache_module  # noqa: E402
from tour_ops_app.infrastructure.cache import LruTtlCache  # noqa: E402


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def monotonic(self) -> float:
        return self.now


def _patched_cache(monkeypatch, **kwargs) -> tuple[LruTtlCache, _Clock]:
    clock = _Clock()
    monkeypatch.setattr(cache_module, "time", clock)
    options = {"enabled": True, "ttl_seconds": 60, "max_entries": 3}
    options.update(kwargs)
    return LruTtlCache(**options), clock


def test_cache_returns_value_until_ttl_expires(monkeypatch) -> None:
    cache, clock = _patched_cache(monkeypatch)
    cache.set("tours", [1, 2])

    assert cache.get("tours") == [1, 2]
    clock.now += 61
    assert cache.get("tours") is None
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_cache_evicts_least_recently_used(monkeypatch) -> None:
    cache, _ = _patched_cache(monkeypatch)
    for key in ("a", "b", "c"):
        cache.set(key, key.upper())

    assert cache.get("a") == "A"
    cache.set("d", "D")

    assert cache.get("b") is None
    assert cache.get("a") == "A"
    assert len(cache) == 3


def test_disabled_cache_never_stores(monkeypatch) -> None:
    cache, _ = _patched_cache(monkeypatch, enabled=False)
    cache.set("k", "v")

    assert cache.get("k") is None
    assert cache.stats()["enabled"] is False
    assert len(cache) == 0


def test_zero_ttl_disables_cache(monkeypatch) -> None:
    cache, _ = _patched_cache(monkeypatch, ttl_seconds=0)
    cache.set("k", "v")

    assert cache.active is False
    assert cache.get("k") is None


def test_clone_value_protects_cached_entry(monkeypatch) -> None:
    cache, _ = _patched_cache(monkeypatch, clone_value=lambda value: list(value))
    original = [1, 2]
    cache.set("k", original)
    original.append(3)

    fetched = cache.get("k")
    fetched.append(4)

    assert cache.get("k") == [1, 2]
