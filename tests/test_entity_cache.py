from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.imports.entity_cache import (  # noqa: E402
    EntityCacheLoader,
    build_entity_caches,
    load_entity_caches,
)


class _MasterRepo:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def list_master(self, entity_type: str, **_kwargs):
        self.calls.append(entity_type)
        return {
            "companies": [{"id": "c1", "name": "Việt Á"}],
            "guides": [{"id": "g1", "name": "Cao Hữu Tu"}],
            "nationalities": [{"id": "n1", "name": "Việt Nam", "iso2": "VN"}],
        }[entity_type]


def test_first_seen_entity_wins_for_duplicate_normalized_names() -> None:
    caches = build_entity_caches(
        companies=[{"id": "c1", "name": "Việt Á"}, {"id": "c2", "name": "viet a"}],
        guides=[],
        nationalities=[],
    )

    assert caches.companies_by_name["viet a"]["id"] == "c1"
    assert len(caches.companies) == 2


def test_nationalities_are_indexed_by_iso_code() -> None:
    caches = build_entity_caches(
        companies=[],
        guides=[],
        nationalities=[{"id": "n1", "name": "France", "iso2": "FR"}, {"id": "n2", "name": "Japan", "iso2": ""}],
    )

    assert caches.nationalities_by_iso["fr"]["id"] == "n1"
    assert "" not in caches.nationalities_by_iso


def test_load_entity_caches_reads_three_master_lists() -> None:
    repo = _MasterRepo()

    caches = load_entity_caches(repo)

    assert sorted(repo.calls) == ["companies", "guides", "nationalities"]
    assert caches.by_name("guide")["cao huu tu"]["id"] == "g1"


def test_loader_memoizes_after_first_load() -> None:
    repo = _MasterRepo()
    loader = EntityCacheLoader.for_repo(repo)

    first = loader.get()
    second = loader.get()

    assert first is second
    assert loader.load_count == 1
    assert len(repo.calls) == 3


def test_concurrent_callers_share_one_inflight_load() -> None:
    started = threading.Event()
    release = threading.Event()
    load_calls: list[int] = []

    def _slow_load():
        load_calls.append(1)
        started.set()
        release.wait(timeout=5)
        return build_entity_caches([], [], [])

    loader = EntityCacheLoader(_slow_load)
    results: list[object] = []

    def _worker() -> None:
        results.append(loader.get())

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    threads[0].start()
    assert started.wait(timeout=5)
    for thread in threads[1:]:
        thread.start()
    time.sleep(0.05)
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert len(load_calls) == 1
    assert len(results) == 4
    assert all(result is results[0] for result in results)


def test_failed_load_is_not_memoized() -> None:
    attempts: list[int] = []

    def _flaky_load():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("warehouse unavailable")
        return build_entity_caches([], [], [])

    loader = EntityCacheLoader(_flaky_load)

    with pytest.raises(RuntimeError):
        loader.get()
    loader.get()

    assert len(attempts) == 2
    assert loader.load_count == 1


def test_invalidate_forces_reload() -> None:
    repo = _MasterRepo()
    loader = EntityCacheLoader.for_repo(repo)

    loader.get()
    loader.invalidate()
    loader.get()

    assert loader.load_count == 2
