from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.core.errors import EntityNotFoundError  # noqa: E402
from tour_ops_app.imports import store  # noqa: E402
from tour_ops_app.imports.entity_cache import EntityCacheLoader, build_entity_caches  # noqa: E402
from tour_ops_app.imports.review import ImportReviewSession  # noqa: E402


def _session() -> ImportReviewSession:
    return ImportReviewSession([], EntityCacheLoader(lambda: build_entity_caches([], [], [])))


def test_saved_session_loads_by_token() -> None:
    session = _session()
    token = store.save_review_session(session)

    assert store.load_review_session(token) is session


def test_discarded_session_is_gone() -> None:
    token = store.save_review_session(_session())
    store.discard_review_session(token)

    with pytest.raises(EntityNotFoundError):
        store.load_review_session(token)


def test_expired_sessions_are_pruned(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr(store, "time", SimpleNamespace(monotonic=lambda: now[0]))
    token = store.save_review_session(_session())

    now[0] += store.IMPORT_REVIEW_TTL_SEC + 1

    with pytest.raises(EntityNotFoundError):
        store.load_review_session(token)


def test_oldest_session_is_evicted_past_capacity(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [0.0]

    def _tick() -> float:
        now[0] += 1.0
        return now[0]

    monkeypatch.setattr(store, "time", SimpleNamespace(monotonic=_tick))
    monkeypatch.setattr(store, "IMPORT_REVIEW_MAX_SESSIONS", 2)
    first = store.save_review_session(_session())
    second = store.save_review_session(_session())
    third = store.save_review_session(_session())

    with pytest.raises(EntityNotFoundError):
        store.load_review_session(first)
    store.load_review_session(second)
    store.load_review_session(third)
