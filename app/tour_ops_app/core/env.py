from __future__ import annotations

import os

from tour_ops_app.core.util import as_bool, as_float, as_int

TOUROPS_ENV = "TOUROPS_ENV"
TOUROPS_USE_LOCAL_DB = "TOUROPS_USE_LOCAL_DB"
TOUROPS_LOCAL_DB_PATH = "TOUROPS_LOCAL_DB_PATH"
TOUROPS_LOCAL_DB_AUTO_INIT = "TOUROPS_LOCAL_DB_AUTO_INIT"
TOUROPS_LOCAL_DB_RESET_ON_START = "TOUROPS_LOCAL_DB_RESET_ON_START"
TOUROPS_LOCAL_DB_SEED = "TOUROPS_LOCAL_DB_SEED"
TOUROPS_FQ_SCHEMA = "TOUROPS_FQ_SCHEMA"
TOUROPS_CATALOG = "TOUROPS_CATALOG"
TOUROPS_SCHEMA = "TOUROPS_SCHEMA"

TOUROPS_LOG_LEVEL = "TOUROPS_LOG_LEVEL"
TOUROPS_LOG_JSON = "TOUROPS_LOG_JSON"
TOUROPS_LOG_CAPTURE_ROOT = "TOUROPS_LOG_CAPTURE_ROOT"
TOUROPS_ERROR_INCLUDE_DETAILS = "TOUROPS_ERROR_INCLUDE_DETAILS"

TOUROPS_QUERY_CACHE_ENABLED = "TOUROPS_QUERY_CACHE_ENABLED"
TOUROPS_QUERY_CACHE_TTL_SEC = "TOUROPS_QUERY_CACHE_TTL_SEC"
TOUROPS_QUERY_CACHE_MAX_ENTRIES = "TOUROPS_QUERY_CACHE_MAX_ENTRIES"
TOUROPS_SLOW_QUERY_MS = "TOUROPS_SLOW_QUERY_MS"
TOUROPS_SQL_TRACE_ENABLED = "TOUROPS_SQL_TRACE_ENABLED"
TOUROPS_SQL_TRACE_MAX_LEN = "TOUROPS_SQL_TRACE_MAX_LEN"

TOUROPS_PERF_LOG_ENABLED = "TOUROPS_PERF_LOG_ENABLED"
TOUROPS_PERF_RESPONSE_HEADER = "TOUROPS_PERF_RESPONSE_HEADER"
TOUROPS_SECURITY_HEADERS_ENABLED = "TOUROPS_SECURITY_HEADERS_ENABLED"

TOUROPS_IMPORT_MAX_UPLOAD_BYTES = "TOUROPS_IMPORT_MAX_UPLOAD_BYTES"
TOUROPS_IMPORT_FUZZY_THRESHOLD = "TOUROPS_IMPORT_FUZZY_THRESHOLD"


def get_env(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or "").strip()


def get_env_bool(name: str, *, default: bool = False) -> bool:
    return as_bool(os.getenv(name), default=default)


def get_env_int(
    name: str,
    *,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        raw = str(default)
    return as_int(raw, default=default, min_value=min_value, max_value=max_value)


def get_env_float(
    name: str,
    *,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        raw = str(default)
    return as_float(raw, default=default, min_value=min_value, max_value=max_value)
