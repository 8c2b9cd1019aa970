"""Turns raw imported tour records into tours with resolved entity references.

Resolution never fails a row: a name with no exact or fuzzy match becomes an
unresolved reference (empty id) carrying the raw name, which the review step
must fix before the batch can be confirmed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import SequenceMatcher
import json
from typing import Any

from tour_ops_app.core.env import TOUROPS_IMPORT_FUZZY_THRESHOLD, get_env_float
from tour_ops_app.core.errors import ImportPayloadError
from tour_ops_app.core.util import as_optional_int, clean_text
from tour_ops_app.domain.models import LINE_ITEM_TYPES, EntityRef, Tour, TourSummary, iso_date
from tour_ops_app.domain.text import normalize_entity_name
from tour_ops_app.imports.entity_cache import EntityCaches

DEFAULT_COMPANY_NAME = "Việt Á"
DEFAULT_GUIDE_NAME = "Cao Hữu Tu"
DEFAULT_CLIENT_NAME = "Client Tú"
DEFAULT_NATIONALITY_NAME = "Việt Nam"
DEFAULT_FUZZY_THRESHOLD = 0.3

TOUR_FIELD_ALIASES = {
    "tour_code": ("tourCode", "tour_code"),
    "company": ("company", "companyName", "company_name"),
    "guide": ("tourGuide", "guide", "guideName", "guide_name"),
    "client_name": ("clientName", "client_name"),
    "nationality": ("clientNationality", "nationality", "client_nationality"),
    "adults": ("adults",),
    "children": ("children",),
    "driver_name": ("driverName", "driver_name"),
    "client_phone": ("clientPhone", "client_phone"),
    "start_date": ("startDate", "start_date"),
    "end_date": ("endDate", "end_date"),
    "notes": ("notes",),
}


@dataclass
class RawNames:
    company: str = ""
    guide: str = ""
    nationality: str = ""


@dataclass
class ImportedTour:
    tour: Tour
    raw: RawNames = field(default_factory=RawNames)


def _pick(data: dict[str, Any], key: str) -> Any:
    for alias in TOUR_FIELD_ALIASES[key]:
        value = data.get(alias)
        if value is not None and clean_text(value) != "":
            return value
    return None


def fuzzy_threshold() -> float:
    return get_env_float(
        TOUROPS_IMPORT_FUZZY_THRESHOLD,
        default=DEFAULT_FUZZY_THRESHOLD,
        min_value=0.0,
        max_value=1.0,
    )


def fuzzy_distance(query: str, candidate: str) -> float:
    """0.0 for identical normalized strings, 1.0 for nothing in common."""
    left = normalize_entity_name(query)
    right = normalize_entity_name(candidate)
    if not left or not right:
        return 1.0
    spaced = SequenceMatcher(None, left, right).ratio()
    compact = SequenceMatcher(None, left.replace(" ", ""), right.replace(" ", "")).ratio()
    return 1.0 - max(spaced, compact)


def fuzzy_best_match(
    query: str,
    entities: list[dict[str, Any]],
    *,
    keys: tuple[str, ...] = ("name",),
    threshold: float | None = None,
) -> dict[str, Any] | None:
    limit = fuzzy_threshold() if threshold is None else float(threshold)
    best: dict[str, Any] | None = None
    best_distance = 1.0
    for entity in entities:
        for key in keys:
            distance = fuzzy_distance(query, clean_text(entity.get(key)))
            if distance <= limit and (best is None or distance < best_distance):
                best = entity
                best_distance = distance
    return best


def find_entity(caches: EntityCaches, kind: str, raw_name: str) -> dict[str, Any] | None:
    normalized = normalize_entity_name(raw_name)
    if not normalized:
        return None
    exact = caches.by_name(kind).get(normalized)
    if exact is None and kind == "nationality":
        exact = caches.nationalities_by_iso.get(normalized)
    if exact is not None:
        return exact
    keys = ("name", "iso2") if kind == "nationality" else ("name",)
    return fuzzy_best_match(raw_name, caches.entities(kind), keys=keys)


def find_entity_ref(caches: EntityCaches, kind: str, raw_name: str) -> EntityRef | None:
    entity = find_entity(caches, kind, raw_name)
    if entity is None:
        return None
    return EntityRef(id=clean_text(entity.get("id")), name_at_booking=clean_text(entity.get("name")))


def resolve_ref(caches: EntityCaches, kind: str, raw_name: str) -> EntityRef:
    return find_entity_ref(caches, kind, raw_name) or EntityRef(id="", name_at_booking=raw_name)


def parse_import_text(text: str | bytes) -> list[Any]:
    if isinstance(text, bytes):
        text = text.decode("utf-8-sig")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportPayloadError(f"Invalid JSON format: {exc.msg}") from exc
    return data if isinstance(data, list) else [data]


def validate_import_payload(items: list[Any]) -> None:
    """Structural checks only. Any failure blocks the whole batch."""
    if not items:
        raise ImportPayloadError("Import file contains no tours.")
    errors: list[str] = []
    for index, item in enumerate(items, start=1):
        tour_data = item.get("tour", item) if isinstance(item, dict) else item
        if not isinstance(tour_data, dict):
            errors.append(f"Tour {index}: Invalid tour data structure")
    if errors:
        raise ImportPayloadError("; ".join(errors))


def transform_imported_tour(data: dict[str, Any], caches: EntityCaches) -> ImportedTour:
    tour_data = data.get("tour") if isinstance(data.get("tour"), dict) else data
    subcollections = data.get("subcollections") if isinstance(data.get("subcollections"), dict) else {}

    company_name = clean_text(_pick(tour_data, "company")) or DEFAULT_COMPANY_NAME
    guide_name = clean_text(_pick(tour_data, "guide")) or DEFAULT_GUIDE_NAME
    nationality_name = clean_text(_pick(tour_data, "nationality")) or DEFAULT_NATIONALITY_NAME

    tour = Tour(
        tour_code=clean_text(_pick(tour_data, "tour_code")),
        company_ref=resolve_ref(caches, "company", company_name),
        guide_ref=resolve_ref(caches, "guide", guide_name),
        client_nationality_ref=resolve_ref(caches, "nationality", nationality_name),
        client_name=clean_text(_pick(tour_data, "client_name")) or DEFAULT_CLIENT_NAME,
        adults=max(0, as_optional_int(_pick(tour_data, "adults")) or 0),
        children=max(0, as_optional_int(_pick(tour_data, "children")) or 0),
        driver_name=clean_text(_pick(tour_data, "driver_name")),
        client_phone=clean_text(_pick(tour_data, "client_phone")),
        start_date=iso_date(_pick(tour_data, "start_date")),
        end_date=iso_date(_pick(tour_data, "end_date")),
        notes=clean_text(_pick(tour_data, "notes")),
        summary=TourSummary.from_dict(subcollections.get("summary")),
    )
    for collection, item_type in LINE_ITEM_TYPES.items():
        rows = subcollections.get(collection) or tour_data.get(collection) or []
        setattr(tour, collection, [item_type.from_dict(row) for row in rows if isinstance(row, dict)])
    tour.refresh_derived()
    return ImportedTour(
        tour=tour,
        raw=RawNames(company=company_name, guide=guide_name, nationality=nationality_name),
    )


def transform_import_payload(items: list[Any], caches: EntityCaches) -> list[ImportedTour]:
    validate_import_payload(items)
    return [transform_imported_tour(item, caches) for item in items]


def sample_import_payload() -> list[dict[str, Any]]:
    return [
        {
            "tour": {
                "tourCode": "SAMPLE001",
                "company": DEFAULT_COMPANY_NAME,
                "tourGuide": DEFAULT_GUIDE_NAME,
                "clientName": "Sample Client",
                "clientNationality": DEFAULT_NATIONALITY_NAME,
                "adults": 2,
                "children": 1,
                "totalGuests": 3,
                "driverName": "Sample Driver",
                "clientPhone": "+84123456789",
                "startDate": "2025-01-15",
                "endDate": "2025-01-20",
                "totalDays": 6,
            },
            "subcollections": {
                "destinations": [{"name": "Hà Nội", "date": "2025-01-15", "price": 100000}],
                "expenses": [{"name": "Transportation", "date": "2025-01-15", "price": 500000}],
                "meals": [{"name": "Lunch", "date": "2025-01-15", "price": 150000, "guests": 2}],
                "allowances": [{"name": "CTP", "date": "2025-01-15", "price": 200000, "quantity": 1}],
                "summary": {"advancePayment": 0, "companyTip": 0, "collectionsForCompany": 0},
            },
        }
    ]
