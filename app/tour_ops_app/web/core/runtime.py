from __future__ import annotations

from contextlib import suppress
from functools import lru_cache

from tour_ops_app.core.config import AppConfig
from tour_ops_app.repository import TourRepository


@lru_cache(maxsize=1)
def _base_config() -> AppConfig:
    return AppConfig.from_env()


@lru_cache(maxsize=1)
def _base_repo() -> TourRepository:
    return TourRepository(_base_config())


def get_config() -> AppConfig:
    return _base_config()


def get_repo() -> TourRepository:
    return _base_repo()


def require_runtime_schema() -> None:
    """Route dependency: fail with SchemaBootstrapRequiredError before touching missing tables."""
    get_repo().ensure_runtime_tables()


def _clear_base_config_cache() -> None:
    _base_config.cache_clear()


def _clear_base_repo_cache() -> None:
    if _base_repo.cache_info().currsize:
        with suppress(Exception):
            _base_repo().close()
    _base_repo.cache_clear()


get_config.cache_clear = _clear_base_config_cache  # type: ignore[attr-defined]
get_repo.cache_clear = _clear_base_repo_cache  # type: ignore[attr-defined]
