from __future__ import annotations

import contextvars
from contextlib import contextmanager
from datetime import date, datetime
import hashlib
import logging
from pathlib import Path
import re
import sqlite3
import time
from typing import Any, Iterable, Iterator

import pandas as pd
from databricks import sql as dbsql
from databricks.sdk.core import Config as DatabricksSDKConfig
from databricks.sdk.core import oauth_service_principal

from tour_ops_app.core.config import AppConfig
from tour_ops_app.core.env import (
    TOUROPS_QUERY_CACHE_ENABLED,
    TOUROPS_QUERY_CACHE_MAX_ENTRIES,
    TOUROPS_QUERY_CACHE_TTL_SEC,
    TOUROPS_SLOW_QUERY_MS,
    TOUROPS_SQL_TRACE_ENABLED,
    TOUROPS_SQL_TRACE_MAX_LEN,
    get_env_bool,
    get_env_float,
    get_env_int,
)
from tour_ops_app.infrastructure.cache import LruTtlCache

PERF_LOGGER = logging.getLogger("tour_ops_app.perf")
_REQUEST_PERF_CONTEXT: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "tour_ops_request_perf",
    default=None,
)


def start_request_perf_context(
    *,
    request_id: str,
    method: str,
    path: str,
    slow_query_ms: float,
) -> contextvars.Token:
    return _REQUEST_PERF_CONTEXT.set(
        {
            "request_id": request_id,
            "method": method,
            "path": path,
            "slow_query_ms": float(slow_query_ms),
            "db_calls": 0,
            "db_total_ms": 0.0,
            "db_cache_hits": 0,
            "db_errors": 0,
        }
    )


def get_request_perf_context() -> dict[str, Any] | None:
    return _REQUEST_PERF_CONTEXT.get()


def clear_request_perf_context(token: contextvars.Token) -> None:
    _REQUEST_PERF_CONTEXT.reset(token)


class DataConnectionError(RuntimeError):
    """Raised when a database connection cannot be established."""


class DataQueryError(RuntimeError):
    """Raised when a query operation fails."""


class DataExecutionError(RuntimeError):
    """Raised when a non-query execution fails."""


class SQLClient:
    """Runs parameterized SQL against the Databricks warehouse or the local SQLite cache.

    Statements use ``%s`` placeholders and may reference tables through the
    fully qualified schema; both are rewritten for the local backend.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self._query_cache = LruTtlCache[tuple[str, tuple[Any, ...]], pd.DataFrame](
            enabled=get_env_bool(TOUROPS_QUERY_CACHE_ENABLED, default=True),
            ttl_seconds=get_env_int(TOUROPS_QUERY_CACHE_TTL_SEC, default=120, min_value=0),
            max_entries=get_env_int(TOUROPS_QUERY_CACHE_MAX_ENTRIES, default=256, min_value=1),
            clone_value=lambda frame: frame.copy(deep=True),
        )
        self._sql_trace_enabled = get_env_bool(TOUROPS_SQL_TRACE_ENABLED, default=False)
        self._sql_trace_max_len = get_env_int(TOUROPS_SQL_TRACE_MAX_LEN, default=180, min_value=80)
        self._slow_query_ms = get_env_float(TOUROPS_SLOW_QUERY_MS, default=750.0, min_value=1.0)

    def cache_stats(self) -> dict[str, int | bool]:
        return self._query_cache.stats()

    def close(self) -> None:
        self._query_cache.clear()

    def _validate(self) -> None:
        missing = []
        if not self.config.databricks_server_hostname:
            missing.append("DATABRICKS_SERVER_HOSTNAME")
        if not self.config.databricks_http_path:
            missing.append("DATABRICKS_HTTP_PATH")
        if missing:
            raise DataConnectionError(f"Missing Databricks settings: {', '.join(missing)}")

    def _connect_databricks(self):
        common = {
            "server_hostname": self.config.databricks_server_hostname,
            "http_path": self.config.databricks_http_path,
        }
        token = str(self.config.databricks_token or "").strip()
        if token:
            return dbsql.connect(access_token=token, **common)

        host_url = f"https://{self.config.databricks_server_hostname}"
        client_id = str(self.config.databricks_client_id or "").strip()
        client_secret = str(self.config.databricks_client_secret or "").strip()
        if client_id and client_secret:
            sdk_credentials_provider = oauth_service_principal(
                DatabricksSDKConfig(host=host_url, client_id=client_id, client_secret=client_secret)
            )

            # the connector expects credentials_provider() -> header factory
            def _credentials_provider():
                return sdk_credentials_provider

            return dbsql.connect(credentials_provider=_credentials_provider, **common)

        runtime_cfg = DatabricksSDKConfig(host=host_url)

        def _runtime_credentials_provider():
            return runtime_cfg.authenticate

        return dbsql.connect(credentials_provider=_runtime_credentials_provider, **common)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        if self.config.use_local_db:
            db_path = Path(self.config.local_db_path).resolve()
            if not db_path.exists():
                raise DataConnectionError(
                    f"Local DB not found: {db_path}. Run `python setup/local_db/init_local_db.py --reset` first."
                )
            try:
                conn = sqlite3.connect(str(db_path))
            except sqlite3.Error as exc:
                raise DataConnectionError(f"Failed to connect to local SQLite DB at {db_path}.") from exc
        else:
            self._validate()
            try:
                conn = self._connect_databricks()
            except Exception as exc:
                details = str(exc).strip()
                message = "Failed to connect to Databricks SQL warehouse."
                if details:
                    message = f"{message} Details: {details}"
                raise DataConnectionError(message) from exc
        try:
            yield conn
        finally:
            conn.close()

    def _prepare(self, statement: str) -> str:
        normalized = str(statement or "").lstrip("\ufeff")
        normalized = normalized.replace("%s", "?")
        if self.config.use_local_db:
            normalized = normalized.replace(f"{self.config.fq_schema}.", "")
        return normalized

    def _prepare_params(self, params: Iterable[Any] | None) -> tuple[Any, ...]:
        if not params:
            return ()
        if not self.config.use_local_db:
            return tuple(params)
        cleaned: list[Any] = []
        for value in params:
            if isinstance(value, (datetime, date)):
                cleaned.append(value.isoformat())
            elif isinstance(value, bool):
                cleaned.append(int(value))
            else:
                cleaned.append(value)
        return tuple(cleaned)

    @staticmethod
    def _sql_preview(statement: str, max_len: int = 180) -> str:
        compact = re.sub(r"\s+", " ", str(statement or "")).strip()
        if len(compact) <= max_len:
            return compact
        return f"{compact[: max_len - 3]}..."

    def _record_query_perf(
        self,
        *,
        operation: str,
        statement: str,
        elapsed_ms: float,
        cached: bool,
        row_count: int | None = None,
        error: bool = False,
    ) -> None:
        request_ctx = get_request_perf_context()
        if request_ctx is not None:
            request_ctx["db_calls"] += 1
            request_ctx["db_total_ms"] += float(elapsed_ms)
            if cached:
                request_ctx["db_cache_hits"] += 1
            if error:
                request_ctx["db_errors"] += 1

        slow = elapsed_ms >= self._slow_query_ms
        if not (self._sql_trace_enabled or slow or error):
            return

        sql_hash = hashlib.sha1(statement.encode("utf-8", errors="ignore")).hexdigest()[:12]
        preview = self._sql_preview(statement, max_len=self._sql_trace_max_len)
        log_fn = PERF_LOGGER.warning if (slow or error) else PERF_LOGGER.info
        log_fn(
            "sql_perf op=%s ms=%.2f cached=%s rows=%s error=%s hash=%s sql=%s",
            operation,
            float(elapsed_ms),
            str(bool(cached)).lower(),
            "-" if row_count is None else int(row_count),
            str(bool(error)).lower(),
            sql_hash,
            preview,
            extra={
                "event": "sql_perf",
                "operation": operation,
                "elapsed_ms": round(float(elapsed_ms), 2),
                "cached": bool(cached),
                "rows": row_count,
                "error": bool(error),
                "sql_hash": sql_hash,
            },
        )

    @staticmethod
    def _leading_sql_keyword(statement: str) -> str:
        lines = [
            line.strip()
            for line in str(statement or "").splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        normalized = " ".join(lines).lstrip("(").strip()
        if not normalized:
            return ""
        return normalized.split(None, 1)[0].upper()

    def _is_read_statement(self, statement: str) -> bool:
        return self._leading_sql_keyword(statement) in {"SELECT", "WITH"}

    def query(self, statement: str, params: Iterable[Any] | None = None) -> pd.DataFrame:
        prepared_statement = self._prepare(statement)
        prepared_params = self._prepare_params(params)
        use_cache = self._is_read_statement(prepared_statement)
        cache_key = (prepared_statement, prepared_params)
        started = time.perf_counter()
        if use_cache:
            cached = self._query_cache.get(cache_key)
            if cached is not None:
                self._record_query_perf(
                    operation="query",
                    statement=prepared_statement,
                    elapsed_ms=(time.perf_counter() - started) * 1000.0,
                    cached=True,
                    row_count=len(cached.index),
                )
                return cached
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(prepared_statement, prepared_params)
                    rows = cursor.fetchall()
                    cols = [desc[0] for desc in cursor.description] if cursor.description else []
                finally:
                    cursor.close()
        except DataConnectionError:
            self._record_query_perf(
                operation="query", statement=prepared_statement, elapsed_ms=0.0, cached=False, error=True
            )
            raise
        except Exception as exc:
            self._record_query_perf(
                operation="query",
                statement=prepared_statement,
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
                cached=False,
                error=True,
            )
            raise DataQueryError(f"Query execution failed: {exc}") from exc

        frame = pd.DataFrame([tuple(row) for row in rows], columns=cols)
        if use_cache:
            self._query_cache.set(cache_key, frame)
        self._record_query_perf(
            operation="query",
            statement=prepared_statement,
            elapsed_ms=(time.perf_counter() - started) * 1000.0,
            cached=False,
            row_count=len(frame.index),
        )
        return frame

    def execute(self, statement: str, params: Iterable[Any] | None = None) -> None:
        self.execute_batch([(statement, params)])

    def execute_batch(self, statements: Iterable[tuple[str, Iterable[Any] | None]]) -> None:
        """Run several writes on one connection. Local writes commit together."""
        prepared = [(self._prepare(statement), self._prepare_params(params)) for statement, params in statements]
        if not prepared:
            return
        started = time.perf_counter()
        current_statement = prepared[0][0]
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                try:
                    for current_statement, current_params in prepared:
                        cursor.execute(current_statement, current_params)
                finally:
                    cursor.close()
                if self.config.use_local_db:
                    conn.commit()
        except DataConnectionError:
            self._record_query_perf(
                operation="execute", statement=current_statement, elapsed_ms=0.0, cached=False, error=True
            )
            raise
        except Exception as exc:
            self._record_query_perf(
                operation="execute",
                statement=current_statement,
                elapsed_ms=(time.perf_counter() - started) * 1000.0,
                cached=False,
                error=True,
            )
            raise DataExecutionError(f"Statement execution failed: {exc}") from exc
        finally:
            self._query_cache.clear()
        self._record_query_perf(
            operation="execute",
            statement=current_statement,
            elapsed_ms=(time.perf_counter() - started) * 1000.0,
            cached=False,
            row_count=len(prepared),
        )
