from __future__ import annotations

from datetime import date, datetime, timezone
import json
from typing import Any, Mapping

import pandas as pd

BACKUP_DATABASE_LABEL = "tour_ops"


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return "ARRAY[" + ",".join(_quote(str(item)) for item in value) + "]"
    if isinstance(value, dict):
        return _quote(json.dumps(value, ensure_ascii=False))
    if isinstance(value, (datetime, date)):
        return _quote(value.isoformat())
    if isinstance(value, str):
        return _quote(value)
    if pd.isna(value):
        return "NULL"
    if pd.api.types.is_bool(value):
        return "true" if value else "false"
    if pd.api.types.is_integer(value):
        return str(int(value))
    if pd.api.types.is_float(value):
        number = float(value)
        return str(int(number)) if number.is_integer() else repr(number)
    return _quote(str(value))


def table_insert_statements(table_name: str, frame: pd.DataFrame) -> list[str]:
    columns = [str(column) for column in frame.columns]
    column_list = ", ".join(columns)
    statements = []
    for row in frame.itertuples(index=False, name=None):
        values = ", ".join(sql_literal(value) for value in row)
        statements.append(f"INSERT INTO {table_name} ({column_list}) VALUES ({values});")
    return statements


def generate_sql_backup(
    tables: Mapping[str, pd.DataFrame],
    *,
    generated_at: datetime | None = None,
) -> str:
    """Render table dumps as a plain SQL script of INSERT statements.

    Tables are written in mapping order; callers pass them parents first so the
    script can be replayed into an empty schema.
    """
    stamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    lines = [
        f"-- SQL Backup Generated: {stamp}",
        f"-- Database: {BACKUP_DATABASE_LABEL}",
        "",
        "SET client_encoding = 'UTF8';",
        "",
    ]
    for table_name, frame in tables.items():
        lines.append(f"-- Table: {table_name}")
        lines.append(f"-- Records: {len(frame.index)}")
        lines.append("")
        statements = table_insert_statements(table_name, frame)
        if statements:
            lines.extend(statements)
            lines.append("")
    return "\n".join(lines) + "\n"


def backup_filename(now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"backup_{stamp}.sql"
