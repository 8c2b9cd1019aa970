from __future__ import annotations

import threading
import time
import uuid

from tour_ops_app.core.errors import EntityNotFoundError
from tour_ops_app.imports.review import ImportReviewSession

IMPORT_REVIEW_TTL_SEC = 1800.0
IMPORT_REVIEW_MAX_SESSIONS = 64
IMPORT_REVIEW_LOCK = threading.Lock()
_IMPORT_REVIEW_STORE: dict[str, tuple[float, ImportReviewSession]] = {}


def _prune_review_store(now: float) -> None:
    expired = [
        token
        for token, (touched, _) in _IMPORT_REVIEW_STORE.items()
        if (now - touched) >= IMPORT_REVIEW_TTL_SEC
    ]
    for token in expired:
        _IMPORT_REVIEW_STORE.pop(token, None)
    while len(_IMPORT_REVIEW_STORE) > IMPORT_REVIEW_MAX_SESSIONS:
        oldest_token = min(_IMPORT_REVIEW_STORE, key=lambda key: _IMPORT_REVIEW_STORE[key][0])
        _IMPORT_REVIEW_STORE.pop(oldest_token, None)


def save_review_session(session: ImportReviewSession) -> str:
    token = uuid.uuid4().hex
    now = time.monotonic()
    with IMPORT_REVIEW_LOCK:
        _IMPORT_REVIEW_STORE[token] = (now, session)
        _prune_review_store(now)
    return token


def load_review_session(token: str) -> ImportReviewSession:
    """Fetch a live session and refresh its expiry. Unknown or expired tokens raise."""
    key = str(token or "").strip()
    now = time.monotonic()
    with IMPORT_REVIEW_LOCK:
        _prune_review_store(now)
        entry = _IMPORT_REVIEW_STORE.get(key)
        if entry is None:
            raise EntityNotFoundError("Import review session", key or "-")
        _IMPORT_REVIEW_STORE[key] = (now, entry[1])
        return entry[1]


def discard_review_session(token: str) -> None:
    key = str(token or "").strip()
    if not key:
        return
    with IMPORT_REVIEW_LOCK:
        _IMPORT_REVIEW_STORE.pop(key, None)


def clear_review_sessions() -> None:
    with IMPORT_REVIEW_LOCK:
        _IMPORT_REVIEW_STORE.clear()
