from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import logging
from typing import Any

from tour_ops_app.core.errors import DuplicateEntityError, EntityNotFoundError
from tour_ops_app.core.util import as_number, as_optional_int, clean_text
from tour_ops_app.domain.models import (
    LINE_ITEM_TYPES,
    EntityRef,
    Tour,
    TourSummary,
    iso_date,
    parse_date,
)
from tour_ops_app.domain.text import normalize_entity_name
from tour_ops_app.domain.totals import calculate_tour_summary
from tour_ops_app.repository_master import copy_name

LOGGER = logging.getLogger(__name__)

LINE_ITEM_TABLES = {
    "destinations": "tour_destinations",
    "expenses": "tour_expenses",
    "meals": "tour_meals",
    "allowances": "tour_allowances",
    "shoppings": "tour_shoppings",
}
TOUR_SORT_KEYS = ("start_date", "end_date", "tour_code", "client_name", "created_at")
TOUR_REFS = {
    "company_ref": ("company_id", "company_name_at_booking"),
    "guide_ref": ("guide_id", "guide_name_at_booking"),
    "client_nationality_ref": ("nationality_id", "nationality_name_at_booking"),
}
TOUR_SCALAR_FIELDS = (
    "tour_code",
    "client_name",
    "adults",
    "children",
    "driver_name",
    "client_phone",
    "start_date",
    "end_date",
    "notes",
)
SUMMARY_INPUT_FIELDS = ("advance_payment", "company_tip", "collections_for_company")
SUMMARY_FIELDS = tuple(item.name for item in fields(TourSummary))


@dataclass(frozen=True)
class TourQuery:
    tour_code: str = ""
    client_name: str = ""
    company_id: str = ""
    guide_id: str = ""
    nationality_id: str = ""
    start_date: str = ""
    end_date: str = ""
    sort_by: str = "start_date"
    sort_desc: bool = True
    limit: int = 100
    offset: int = 0


def _line_collection(collection: str) -> str:
    key = clean_text(collection).lower()
    if key not in LINE_ITEM_TABLES:
        raise ValueError(f"Unknown line-item collection: {collection}")
    return key


def _sorted_by_date(items: list[Any]) -> list[Any]:
    return sorted(items, key=lambda item: item.date or "")


class RepositoryToursMixin:
    def _tour_values(self, tour: Tour) -> dict[str, Any]:
        values: dict[str, Any] = {
            "id": tour.id,
            "tour_code": tour.tour_code,
            "client_name": tour.client_name,
            "adults": int(tour.adults),
            "children": int(tour.children),
            "total_guests": int(tour.total_guests),
            "driver_name": tour.driver_name,
            "client_phone": tour.client_phone,
            "start_date": tour.start_date,
            "end_date": tour.end_date,
            "total_days": int(tour.total_days),
            "notes": tour.notes,
            "created_at": tour.created_at,
            "updated_at": tour.updated_at,
        }
        for ref_name, (id_col, name_col) in TOUR_REFS.items():
            ref: EntityRef = getattr(tour, ref_name)
            values[id_col] = ref.id
            values[name_col] = ref.name_at_booking
        for key in SUMMARY_FIELDS:
            values[key] = float(getattr(tour.summary, key))
        return values

    def _tour_from_row(self, row: dict[str, Any]) -> Tour:
        payload = dict(row)
        for ref_name, (id_col, name_col) in TOUR_REFS.items():
            payload[ref_name] = {"id": row.get(id_col), "name_at_booking": row.get(name_col)}
        payload["summary"] = {key: row.get(key) for key in SUMMARY_FIELDS}
        return Tour.from_dict(payload)

    def _line_item_statements(self, tour: Tour, collection: str) -> list[tuple[str, tuple[Any, ...]]]:
        table_name = LINE_ITEM_TABLES[collection]
        statements = [(f"DELETE FROM {self._table(table_name)} WHERE tour_id = %s", (tour.id,))]
        items = _sorted_by_date(getattr(tour, collection))
        setattr(tour, collection, items)
        now = self._now()
        for position, item in enumerate(items):
            values: dict[str, Any] = {
                "id": self._new_id("item"),
                "tour_id": tour.id,
                "position": position,
                "name": item.name,
                "price": float(item.price),
                "date": item.date,
                "created_at": now,
            }
            if hasattr(item, "guests"):
                values["guests"] = item.guests
            if hasattr(item, "quantity"):
                values["quantity"] = int(item.quantity or 1)
            statements.append(self._insert_statement(table_name, values))
        return statements

    def _validate_tour(self, tour: Tour, *, exclude_id: str = "") -> None:
        if not tour.tour_code:
            raise ValueError("Tour code is required.")
        if not tour.start_date or not tour.end_date:
            raise ValueError("Start date and end date are required.")
        if parse_date(tour.end_date) < parse_date(tour.start_date):
            raise ValueError("End date must be on or after the start date.")
        if tour.adults < 0 or tour.children < 0:
            raise ValueError("Guest counts cannot be negative.")
        if tour.tour_code.casefold() in self._taken_tour_codes(exclude_id=exclude_id):
            raise DuplicateEntityError("Tour", tour.tour_code)

    def _taken_tour_codes(self, *, exclude_id: str = "") -> set[str]:
        frame = self.client.query(f"SELECT id, tour_code FROM {self._table('tours')}")
        return {
            clean_text(row["tour_code"]).casefold()
            for row in frame.to_dict("records")
            if clean_text(row["id"]) != exclude_id
        }

    def _load_line_items(self, tour: Tour) -> Tour:
        for collection, table_name in LINE_ITEM_TABLES.items():
            rows = self._query_records(
                f"SELECT * FROM {self._table(table_name)} WHERE tour_id = %s ORDER BY date, position",
                (tour.id,),
            )
            item_type = LINE_ITEM_TYPES[collection]
            setattr(tour, collection, [item_type.from_dict(row) for row in rows])
        return tour

    def get_tour(self, tour_id: str) -> Tour:
        rows = self._query_records(
            f"SELECT * FROM {self._table('tours')} WHERE id = %s",
            (clean_text(tour_id),),
        )
        if not rows:
            raise EntityNotFoundError("Tour", tour_id)
        return self._load_line_items(self._tour_from_row(rows[0]))

    def list_tours(self, query: TourQuery | None = None) -> list[dict[str, Any]]:
        query = query or TourQuery()
        sort_by = query.sort_by if query.sort_by in TOUR_SORT_KEYS else "start_date"
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("company_id", query.company_id),
            ("guide_id", query.guide_id),
            ("nationality_id", query.nationality_id),
        ):
            if clean_text(value):
                clauses.append(f"{column} = %s")
                params.append(clean_text(value))
        if iso_date(query.start_date):
            clauses.append("end_date >= %s")
            params.append(iso_date(query.start_date))
        if iso_date(query.end_date):
            clauses.append("start_date <= %s")
            params.append(iso_date(query.end_date))
        statement = f"SELECT * FROM {self._table('tours')}"
        if clauses:
            statement += " WHERE " + " AND ".join(clauses)
        direction = "DESC" if query.sort_desc else "ASC"
        statement += f" ORDER BY {sort_by} {direction}, tour_code ASC"
        tours = [self._tour_from_row(row) for row in self._query_records(statement, params)]

        code_needle = normalize_entity_name(query.tour_code)
        client_needle = normalize_entity_name(query.client_name)
        if code_needle:
            tours = [tour for tour in tours if code_needle in normalize_entity_name(tour.tour_code)]
        if client_needle:
            tours = [tour for tour in tours if client_needle in normalize_entity_name(tour.client_name)]

        offset = max(0, int(query.offset or 0))
        limit = max(1, min(int(query.limit or 100), 500))
        results = []
        for tour in tours[offset : offset + limit]:
            record = tour.to_dict()
            for collection in LINE_ITEM_TABLES:
                record.pop(collection, None)
            results.append(record)
        return results

    def create_tour(self, payload: dict[str, Any] | Tour) -> Tour:
        tour = payload if isinstance(payload, Tour) else Tour.from_dict(payload)
        tour.refresh_derived()
        self._validate_tour(tour)
        now = self._now()
        tour.id = self._new_id("tour")
        tour.created_at = now
        tour.updated_at = now
        tour.summary = calculate_tour_summary(tour)
        statements = [self._insert_statement("tours", self._tour_values(tour))]
        for collection in LINE_ITEM_TABLES:
            statements.extend(self._line_item_statements(tour, collection)[1:])
        self.client.execute_batch(statements)
        LOGGER.info(
            "Created tour. id=%s code=%s",
            tour.id,
            tour.tour_code,
            extra={"event": "tour_created", "tour_id": tour.id, "tour_code": tour.tour_code},
        )
        return self.get_tour(tour.id)

    def update_tour(self, tour_id: str, patch: dict[str, Any]) -> Tour:
        tour = self.get_tour(tour_id)
        for key in TOUR_SCALAR_FIELDS:
            if key not in patch:
                continue
            if key in {"adults", "children"}:
                setattr(tour, key, as_optional_int(patch.get(key)) or 0)
            elif key in {"start_date", "end_date"}:
                setattr(tour, key, iso_date(patch.get(key)))
            else:
                setattr(tour, key, clean_text(patch.get(key)))
        for ref_name in TOUR_REFS:
            if ref_name in patch:
                setattr(tour, ref_name, EntityRef.from_value(patch.get(ref_name)))
        summary_patch = patch.get("summary") if isinstance(patch.get("summary"), dict) else {}
        for key in SUMMARY_INPUT_FIELDS:
            if key in summary_patch:
                setattr(tour.summary, key, as_number(summary_patch.get(key)))
        replaced = [collection for collection in LINE_ITEM_TABLES if isinstance(patch.get(collection), list)]
        for collection in replaced:
            item_type = LINE_ITEM_TYPES[collection]
            setattr(tour, collection, [item_type.from_dict(row) for row in patch[collection] if isinstance(row, dict)])

        tour.refresh_derived()
        self._validate_tour(tour, exclude_id=tour.id)
        tour.updated_at = self._now()
        tour.summary = calculate_tour_summary(tour)
        values = self._tour_values(tour)
        values.pop("id")
        values.pop("created_at")
        statements = [self._update_statement("tours", values, key_column="id", key_value=tour.id)]
        for collection in replaced:
            statements.extend(self._line_item_statements(tour, collection))
        self.client.execute_batch(statements)
        return self.get_tour(tour.id)

    def delete_tour(self, tour_id: str) -> None:
        tour = self.get_tour(tour_id)
        statements = [
            (f"DELETE FROM {self._table(table_name)} WHERE tour_id = %s", (tour.id,))
            for table_name in (*LINE_ITEM_TABLES.values(), "tour_diaries")
        ]
        statements.append((f"DELETE FROM {self._table('tours')} WHERE id = %s", (tour.id,)))
        self.client.execute_batch(statements)
        LOGGER.info(
            "Deleted tour. id=%s code=%s",
            tour.id,
            tour.tour_code,
            extra={"event": "tour_deleted", "tour_id": tour.id},
        )

    def delete_all_tours(self) -> int:
        count = len(self._taken_tour_codes())
        self.client.execute_batch(
            [
                (f"DELETE FROM {self._table(table_name)}", None)
                for table_name in (*LINE_ITEM_TABLES.values(), "tour_diaries", "tours")
            ]
        )
        LOGGER.warning("Deleted all tours. count=%s", count, extra={"event": "tours_deleted_all", "count": count})
        return count

    def duplicate_tour(self, tour_id: str) -> Tour:
        tour = self.get_tour(tour_id)
        tour.tour_code = copy_name(tour.tour_code, self._taken_tour_codes())
        return self.create_tour(tour)

    def list_line_items(self, tour_id: str, collection: str) -> list[dict[str, Any]]:
        key = _line_collection(collection)
        tour = self.get_tour(tour_id)
        return [asdict(item) for item in getattr(tour, key)]

    def _save_line_items(self, tour: Tour, collection: str) -> Tour:
        tour.summary = calculate_tour_summary(tour)
        tour.updated_at = self._now()
        summary_values = {key: float(getattr(tour.summary, key)) for key in SUMMARY_FIELDS}
        summary_values["updated_at"] = tour.updated_at
        statements = self._line_item_statements(tour, collection)
        statements.append(self._update_statement("tours", summary_values, key_column="id", key_value=tour.id))
        self.client.execute_batch(statements)
        return self.get_tour(tour.id)

    def _line_item_at(self, tour: Tour, collection: str, index: int) -> int:
        items = getattr(tour, collection)
        position = int(index)
        if position < 0 or position >= len(items):
            raise EntityNotFoundError(f"{collection} item", str(index))
        return position

    def add_line_item(self, tour_id: str, collection: str, item: dict[str, Any]) -> Tour:
        key = _line_collection(collection)
        tour = self.get_tour(tour_id)
        new_item = LINE_ITEM_TYPES[key].from_dict(item or {})
        if not new_item.name:
            raise ValueError("Line item name is required.")
        getattr(tour, key).append(new_item)
        return self._save_line_items(tour, key)

    def update_line_item(self, tour_id: str, collection: str, index: int, patch: dict[str, Any]) -> Tour:
        key = _line_collection(collection)
        tour = self.get_tour(tour_id)
        position = self._line_item_at(tour, key, index)
        items = getattr(tour, key)
        merged = {**asdict(items[position]), **(patch or {})}
        items[position] = LINE_ITEM_TYPES[key].from_dict(merged)
        return self._save_line_items(tour, key)

    def remove_line_item(self, tour_id: str, collection: str, index: int) -> Tour:
        key = _line_collection(collection)
        tour = self.get_tour(tour_id)
        position = self._line_item_at(tour, key, index)
        getattr(tour, key).pop(position)
        return self._save_line_items(tour, key)
