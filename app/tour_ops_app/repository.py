from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import pandas as pd

from tour_ops_app.core.config import AppConfig
from tour_ops_app.core.errors import SchemaBootstrapRequiredError
from tour_ops_app.domain.master import MASTER_ENTITIES
from tour_ops_app.infrastructure.db import DataConnectionError, SQLClient
from tour_ops_app.repository_diaries import RepositoryDiariesMixin
from tour_ops_app.repository_master import RepositoryMasterMixin
from tour_ops_app.repository_tours import LINE_ITEM_TABLES, RepositoryToursMixin

LOGGER = logging.getLogger(__name__)

TOUR_TABLES = ("tours", *LINE_ITEM_TABLES.values(), "tour_diaries")
RUNTIME_REQUIRED_TABLES = (*(spec.table for spec in MASTER_ENTITIES.values()), *TOUR_TABLES)


class TourRepository(
    RepositoryMasterMixin,
    RepositoryToursMixin,
    RepositoryDiariesMixin,
):
    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.client = SQLClient(config)
        self._runtime_tables_ensured = False

    def close(self) -> None:
        self.client.close()

    def _table(self, name: str) -> str:
        if self.config.use_local_db:
            return name
        return f"{self.config.fq_schema}.{name}"

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _new_id(prefix: str) -> str:
        return f"{prefix}-{uuid.uuid4().hex[:20]}"

    @staticmethod
    def _frame_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
        if frame.empty:
            return []
        return frame.astype(object).where(pd.notna(frame), None).to_dict("records")

    def _query_records(self, statement: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        return self._frame_records(self.client.query(statement, params))

    def _insert_statement(self, table_name: str, values: dict[str, Any]) -> tuple[str, tuple[Any, ...]]:
        columns = list(values)
        placeholders = ", ".join(["%s"] * len(columns))
        return (
            f"INSERT INTO {self._table(table_name)} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(values[column] for column in columns),
        )

    def _update_statement(
        self,
        table_name: str,
        values: dict[str, Any],
        *,
        key_column: str,
        key_value: Any,
    ) -> tuple[str, tuple[Any, ...]]:
        columns = list(values)
        assignments = ", ".join(f"{column} = %s" for column in columns)
        return (
            f"UPDATE {self._table(table_name)} SET {assignments} WHERE {key_column} = %s",
            (*(values[column] for column in columns), key_value),
        )

    def ensure_runtime_tables(self) -> None:
        if self._runtime_tables_ensured:
            return
        missing_or_blocked: list[str] = []
        for table_name in RUNTIME_REQUIRED_TABLES:
            try:
                self.client.query(f"SELECT * FROM {self._table(table_name)} WHERE 1 = 0")
            except DataConnectionError as exc:
                raise SchemaBootstrapRequiredError(
                    "Database connection failed before schema validation. "
                    f"Configured schema: {self.config.fq_schema}. Connection error: {exc}"
                ) from exc
            except Exception:
                missing_or_blocked.append(table_name)
        if missing_or_blocked:
            if self.config.use_local_db:
                hint = "Run `python setup/local_db/init_local_db.py --reset`."
            else:
                hint = f"Run {self.config.schema_bootstrap_sql_path} against {self.config.fq_schema}."
            raise SchemaBootstrapRequiredError(
                f"Missing or inaccessible tables: {', '.join(missing_or_blocked)}. {hint}"
            )
        self._runtime_tables_ensured = True

    def dump_tables(self) -> dict[str, pd.DataFrame]:
        """Every known table, in dependency order, for the SQL backup."""
        dump: dict[str, pd.DataFrame] = {}
        for table_name in RUNTIME_REQUIRED_TABLES:
            dump[table_name] = self.client.query(f"SELECT * FROM {self._table(table_name)}")
        LOGGER.info(
            "Dumped %s tables for backup.",
            len(dump),
            extra={"event": "tables_dumped", "tables": len(dump)},
        )
        return dump
