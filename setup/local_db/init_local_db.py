from __future__ import annotations

import argparse
import sqlite3
from pathlib import Path
from typing import Iterable

_MASTER_COLUMNS = ("id", "name", "status", "search_keywords", "created_at", "updated_at")
_LINE_ITEM_COLUMNS = ("id", "tour_id", "position", "name", "price", "date", "created_at")

REQUIRED_SCHEMA: dict[str, tuple[str, ...]] = {
    "guides": (*_MASTER_COLUMNS, "phone", "note"),
    "companies": (*_MASTER_COLUMNS, "contact_name", "phone", "email", "note"),
    "nationalities": (*_MASTER_COLUMNS, "iso2", "emoji"),
    "provinces": _MASTER_COLUMNS,
    "tourist_destinations": (*_MASTER_COLUMNS, "price", "province_id", "province_name_at_booking"),
    "shoppings": (*_MASTER_COLUMNS, "price"),
    "expense_categories": _MASTER_COLUMNS,
    "detailed_expenses": (*_MASTER_COLUMNS, "price", "category_id", "category_name_at_booking"),
    "diary_types": (*_MASTER_COLUMNS, "data_type"),
    "restaurants": (*_MASTER_COLUMNS, "restaurant_type", "commission_for_guide", "province_id"),
    "shop_places": (*_MASTER_COLUMNS, "shop_type", "commission_for_guide", "province_id"),
    "hotels": (*_MASTER_COLUMNS, "room_type", "price_per_night", "province_id"),
    "tours": (
        "id",
        "tour_code",
        "company_id",
        "company_name_at_booking",
        "guide_id",
        "guide_name_at_booking",
        "nationality_id",
        "nationality_name_at_booking",
        "client_name",
        "adults",
        "children",
        "total_guests",
        "start_date",
        "end_date",
        "total_days",
        "total_tabs",
        "advance_payment",
        "company_tip",
        "collections_for_company",
        "final_total",
    ),
    "tour_destinations": (*_LINE_ITEM_COLUMNS, "guests"),
    "tour_expenses": (*_LINE_ITEM_COLUMNS, "guests"),
    "tour_meals": (*_LINE_ITEM_COLUMNS, "guests"),
    "tour_allowances": (*_LINE_ITEM_COLUMNS, "quantity"),
    "tour_shoppings": _LINE_ITEM_COLUMNS,
    "tour_diaries": (
        "id",
        "tour_id",
        "tour_code_at_booking",
        "diary_type_id",
        "diary_type_name_at_booking",
        "content_type",
        "content_text",
        "content_urls",
    ),
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize a local SQLite DB with the tour ops schema and seed data.")
    parser.add_argument(
        "--db-path",
        default=str(Path(__file__).resolve().parent / "tour_ops_local.db"),
        help="Output SQLite database path.",
    )
    parser.add_argument(
        "--sql-root",
        default=str(Path(__file__).resolve().parent / "sql"),
        help="Root SQL folder path (contains schema/, seed/, queries/).",
    )
    parser.add_argument(
        "--skip-seed",
        action="store_true",
        help="Skip running seed scripts.",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete existing database file before creating.",
    )
    parser.add_argument(
        "--skip-verify",
        action="store_true",
        help="Skip post-bootstrap schema verification.",
    )
    return parser.parse_args(argv)


def _sql_files_from_dir(directory: Path) -> list[Path]:
    if not directory.exists():
        raise FileNotFoundError(f"SQL directory not found: {directory}")
    files = sorted(item for item in directory.iterdir() if item.is_file() and item.suffix.lower() == ".sql")
    if not files:
        raise FileNotFoundError(f"No SQL files found in: {directory}")
    return files


def _apply_sql_files(conn: sqlite3.Connection, files: Iterable[Path]) -> int:
    count = 0
    for sql_file in files:
        conn.executescript(sql_file.read_text(encoding="utf-8"))
        count += 1
    return count


def _table_columns(conn: sqlite3.Connection, table_name: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table_name})").fetchall()
    return {str(row[1]).strip().lower() for row in rows if len(row) > 1 and str(row[1]).strip()}


def verify_required_schema(conn: sqlite3.Connection) -> list[str]:
    errors: list[str] = []
    for table_name, required_columns in REQUIRED_SCHEMA.items():
        present = _table_columns(conn, table_name)
        if not present:
            errors.append(f"missing table: {table_name}")
            continue
        missing = [column for column in required_columns if column.lower() not in present]
        if missing:
            errors.append(f"{table_name} missing columns: {', '.join(missing)}")
    return errors


def count_tables(conn: sqlite3.Connection, count_query_path: Path) -> int:
    statement = count_query_path.read_text(encoding="utf-8")
    row = conn.execute(statement, ("table",)).fetchone()
    return int(row[0]) if row else 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    db_path = Path(args.db_path).resolve()
    sql_root = Path(args.sql_root).resolve()

    schema_files = _sql_files_from_dir(sql_root / "schema")
    seed_files: list[Path] = []
    if not args.skip_seed and (sql_root / "seed").exists():
        seed_files = _sql_files_from_dir(sql_root / "seed")

    if args.reset and db_path.exists():
        db_path.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        schema_script_count = _apply_sql_files(conn, schema_files)
        seed_script_count = _apply_sql_files(conn, seed_files) if seed_files else 0
        conn.commit()
        if not args.skip_verify:
            schema_errors = verify_required_schema(conn)
            if schema_errors:
                raise RuntimeError(
                    "Local schema validation failed. "
                    "Run with --reset to rebuild the database. "
                    f"Details: {'; '.join(schema_errors)}"
                )
        table_count = count_tables(conn, sql_root / "queries" / "count_objects.sql")

    print(f"Local database ready: {db_path}")
    print(f"Schema scripts applied: {schema_script_count}")
    print(f"Seed scripts applied: {seed_script_count}")
    print(f"Tables: {table_count}")


if __name__ == "__main__":
    main()
