from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Any, Callable, Iterable

from tour_ops_app.domain.text import normalize_entity_name

LOGGER = logging.getLogger(__name__)

ENTITY_KINDS = ("company", "guide", "nationality")
ENTITY_KIND_TYPES = {
    "company": "companies",
    "guide": "guides",
    "nationality": "nationalities",
}


@dataclass
class EntityCaches:
    companies: list[dict[str, Any]] = field(default_factory=list)
    guides: list[dict[str, Any]] = field(default_factory=list)
    nationalities: list[dict[str, Any]] = field(default_factory=list)
    companies_by_name: dict[str, dict[str, Any]] = field(default_factory=dict)
    guides_by_name: dict[str, dict[str, Any]] = field(default_factory=dict)
    nationalities_by_name: dict[str, dict[str, Any]] = field(default_factory=dict)
    nationalities_by_iso: dict[str, dict[str, Any]] = field(default_factory=dict)

    def entities(self, kind: str) -> list[dict[str, Any]]:
        return {
            "company": self.companies,
            "guide": self.guides,
            "nationality": self.nationalities,
        }[kind]

    def by_name(self, kind: str) -> dict[str, dict[str, Any]]:
        return {
            "company": self.companies_by_name,
            "guide": self.guides_by_name,
            "nationality": self.nationalities_by_name,
        }[kind]


def _index_first_seen(entities: Iterable[dict[str, Any]], key_field: str) -> dict[str, dict[str, Any]]:
    index: dict[str, dict[str, Any]] = {}
    for entity in entities:
        key = normalize_entity_name(entity.get(key_field))
        if key and key not in index:
            index[key] = entity
    return index


def build_entity_caches(
    companies: Iterable[dict[str, Any]],
    guides: Iterable[dict[str, Any]],
    nationalities: Iterable[dict[str, Any]],
) -> EntityCaches:
    company_list = list(companies or [])
    guide_list = list(guides or [])
    nationality_list = list(nationalities or [])
    return EntityCaches(
        companies=company_list,
        guides=guide_list,
        nationalities=nationality_list,
        companies_by_name=_index_first_seen(company_list, "name"),
        guides_by_name=_index_first_seen(guide_list, "name"),
        nationalities_by_name=_index_first_seen(nationality_list, "name"),
        nationalities_by_iso=_index_first_seen(nationality_list, "iso2"),
    )


def load_entity_caches(repo) -> EntityCaches:
    return build_entity_caches(
        repo.list_master("companies"),
        repo.list_master("guides"),
        repo.list_master("nationalities"),
    )


class EntityCacheLoader:
    """Loads entity caches once per import session.

    Callers that arrive while a load is running wait for that load instead of
    starting another one. A failed load is not memoized.
    """

    def __init__(self, load: Callable[[], EntityCaches]) -> None:
        self._load = load
        self._lock = threading.Lock()
        self._value: EntityCaches | None = None
        self._inflight: Future | None = None
        self.load_count = 0

    @classmethod
    def for_repo(cls, repo) -> "EntityCacheLoader":
        return cls(lambda: load_entity_caches(repo))

    def get(self) -> EntityCaches:
        with self._lock:
            if self._value is not None:
                return self._value
            future = self._inflight
            owner = future is None
            if owner:
                future = Future()
                self._inflight = future
        if not owner:
            return future.result()

        started = time.perf_counter()
        try:
            value = self._load()
        except Exception as exc:
            with self._lock:
                self._inflight = None
            future.set_exception(exc)
            LOGGER.warning(
                "Entity cache load failed.",
                exc_info=True,
                extra={"event": "entity_cache_load_failed"},
            )
            raise
        with self._lock:
            self._value = value
            self._inflight = None
            self.load_count += 1
        future.set_result(value)
        LOGGER.info(
            "Entity caches loaded. companies=%s guides=%s nationalities=%s ms=%.2f",
            len(value.companies),
            len(value.guides),
            len(value.nationalities),
            (time.perf_counter() - started) * 1000.0,
            extra={"event": "entity_cache_loaded"},
        )
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
