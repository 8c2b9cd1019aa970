from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
import threading
import time
from typing import Any

from tour_ops_app.core.errors import EntityNotFoundError
from tour_ops_app.core.util import as_number, as_optional_int, clean_text
from tour_ops_app.domain.models import LINE_ITEM_TYPES, EntityRef, Tour, iso_date
from tour_ops_app.domain.text import normalize_entity_name
from tour_ops_app.imports.entity_cache import ENTITY_KIND_TYPES, ENTITY_KINDS, EntityCacheLoader
from tour_ops_app.imports.resolver import (
    ImportedTour,
    RawNames,
    fuzzy_best_match,
    fuzzy_distance,
    transform_import_payload,
)

LOGGER = logging.getLogger(__name__)

REF_ATTRS = {
    "company": "company_ref",
    "guide": "guide_ref",
    "nationality": "client_nationality_ref",
}
REF_LABELS = {"company": "Company", "guide": "Guide", "nationality": "Nationality"}
LINE_ITEM_CATALOGS = {
    "destinations": "tourist_destinations",
    "expenses": "detailed_expenses",
    "meals": "shoppings",
    "shoppings": "shoppings",
}
EDITABLE_ROW_FIELDS = (
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
REVIEW_SEARCH_THRESHOLD = 0.4


def _ref_kind(kind: str) -> str:
    key = clean_text(kind).lower()
    if key not in ENTITY_KINDS:
        raise ValueError(f"Unknown reference kind: {kind}")
    return key


def missing_fields(tour: Tour) -> list[str]:
    """Labels of the fields that block confirmation, shown as "Required"."""
    missing = []
    if not tour.tour_code:
        missing.append("Tour code")
    if not tour.client_name:
        missing.append("Client name")
    if not tour.start_date:
        missing.append("Start date")
    if not tour.end_date:
        missing.append("End date")
    for kind, attr in REF_ATTRS.items():
        if not getattr(tour, attr).id:
            missing.append(REF_LABELS[kind])
    return missing


def review_warnings(tour: Tour) -> list[str]:
    warnings = []
    for label in missing_fields(tour):
        if label in REF_LABELS.values():
            warnings.append(f"{label} is not selected")
        else:
            warnings.append(f"{label} is missing")
    return warnings


@dataclass
class ReviewItem:
    tour: Tour
    raw: RawNames
    matches: dict[str, dict[int, dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self, index: int) -> dict[str, Any]:
        tour = self.tour.to_dict()
        for collection, matched in self.matches.items():
            for position, match in matched.items():
                if position < len(tour[collection]):
                    tour[collection][position].update(match)
        missing = missing_fields(self.tour)
        return {
            "index": index,
            "tour": tour,
            "raw": asdict(self.raw),
            "missing": {label: "Required" for label in missing},
            "warnings": review_warnings(self.tour),
        }


@dataclass
class ImportResult:
    created: list[dict[str, str]] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "failed": self.failed,
            "created_count": len(self.created),
            "failed_count": len(self.failed),
        }


class ImportReviewSession:
    """Server-held review state for one batch of imported tours."""

    def __init__(self, items: list[ReviewItem], cache_loader: EntityCacheLoader) -> None:
        self.items = items
        self.cache_loader = cache_loader
        self.lock = threading.RLock()
        self.created_at = time.time()

    @classmethod
    def from_payload(cls, payload: list[Any], cache_loader: EntityCacheLoader) -> "ImportReviewSession":
        caches = cache_loader.get()
        imported: list[ImportedTour] = transform_import_payload(payload, caches)
        LOGGER.info(
            "Import review session created. rows=%s",
            len(imported),
            extra={"event": "import_review_created", "rows": len(imported)},
        )
        return cls([ReviewItem(tour=item.tour, raw=item.raw) for item in imported], cache_loader)

    def item(self, index: int) -> ReviewItem:
        position = int(index)
        if position < 0 or position >= len(self.items):
            raise EntityNotFoundError("Import row", str(index))
        return self.items[position]

    def rows(self, *, search: str = "") -> list[dict[str, Any]]:
        rows = [item.to_dict(index) for index, item in enumerate(self.items)]
        if not normalize_entity_name(search):
            return rows
        return [row for row, item in zip(rows, self.items) if self._row_matches(item, search)]

    @staticmethod
    def _row_matches(item: ReviewItem, search: str) -> bool:
        tour = item.tour
        haystack = [
            tour.tour_code,
            tour.client_name,
            tour.company_ref.name_at_booking,
            tour.guide_ref.name_at_booking,
            tour.client_nationality_ref.name_at_booking,
            item.raw.company,
            item.raw.guide,
            item.raw.nationality,
        ]
        for collection in ("destinations", "expenses", "meals"):
            haystack.extend(line.name for line in getattr(tour, collection))
        needle = normalize_entity_name(search)
        for value in haystack:
            normalized = normalize_entity_name(value)
            if not normalized:
                continue
            if needle in normalized or fuzzy_distance(needle, normalized) <= REVIEW_SEARCH_THRESHOLD:
                return True
        return False

    def confirm_errors(self) -> list[str]:
        errors = []
        for index, item in enumerate(self.items, start=1):
            code = item.tour.tour_code or f"Tour {index}"
            errors.extend(f"{code}: {label} is required" for label in missing_fields(item.tour))
        return errors

    def can_confirm(self) -> bool:
        return bool(self.items) and not self.confirm_errors()

    def to_dict(self, *, search: str = "") -> dict[str, Any]:
        return {
            "items": self.rows(search=search),
            "total": len(self.items),
            "can_confirm": self.can_confirm(),
            "errors": self.confirm_errors(),
        }

    def update_row(self, index: int, patch: dict[str, Any]) -> ReviewItem:
        item = self.item(index)
        tour = item.tour
        for key in EDITABLE_ROW_FIELDS:
            if key not in patch:
                continue
            if key in {"adults", "children"}:
                setattr(tour, key, max(0, as_optional_int(patch.get(key)) or 0))
            elif key in {"start_date", "end_date"}:
                setattr(tour, key, iso_date(patch.get(key)))
            else:
                setattr(tour, key, clean_text(patch.get(key)))
        for collection, item_type in LINE_ITEM_TYPES.items():
            if isinstance(patch.get(collection), list):
                setattr(tour, collection, [item_type.from_dict(row) for row in patch[collection] if isinstance(row, dict)])
                item.matches.pop(collection, None)
        tour.refresh_derived()
        return item

    def set_reference(self, index: int, kind: str, entity: dict[str, Any]) -> ReviewItem:
        item = self.item(index)
        ref_kind = _ref_kind(kind)
        setattr(
            item.tour,
            REF_ATTRS[ref_kind],
            EntityRef(id=clean_text(entity.get("id")), name_at_booking=clean_text(entity.get("name"))),
        )
        return item

    def remove_row(self, index: int) -> None:
        self.item(index)
        self.items.pop(int(index))

    def create_entity_inline(
        self,
        repo,
        kind: str,
        payload: dict[str, Any],
        *,
        row_index: int | None = None,
    ) -> dict[str, Any]:
        """Create a master entity, then point the unresolved references that named it at the new id."""
        ref_kind = _ref_kind(kind)
        if row_index is not None:
            self.item(row_index)
        entity = repo.create_master(ENTITY_KIND_TYPES[ref_kind], payload)
        self.cache_loader.invalidate()
        if row_index is not None:
            self.set_reference(row_index, ref_kind, entity)
        attr = REF_ATTRS[ref_kind]
        target = normalize_entity_name(entity["name"])
        backfilled = 0
        for item in self.items:
            ref: EntityRef = getattr(item.tour, attr)
            if ref.id:
                continue
            raw_name = getattr(item.raw, ref_kind)
            if target in {normalize_entity_name(ref.name_at_booking), normalize_entity_name(raw_name)}:
                setattr(item.tour, attr, EntityRef(id=entity["id"], name_at_booking=entity["name"]))
                backfilled += 1
        LOGGER.info(
            "Created %s inline during import review. id=%s backfilled=%s",
            ref_kind,
            entity["id"],
            backfilled,
            extra={"event": "import_entity_created", "kind": ref_kind, "backfilled": backfilled},
        )
        return entity

    def match_line_items(self, catalogs: dict[str, list[dict[str, Any]]]) -> int:
        """Replace line-item names and prices with their closest catalog entry."""
        matched_count = 0
        for item in self.items:
            for collection, catalog_type in LINE_ITEM_CATALOGS.items():
                catalog = catalogs.get(catalog_type) or []
                if not catalog:
                    continue
                lines = getattr(item.tour, collection)
                for position, line in enumerate(lines):
                    if not line.name:
                        continue
                    match = _catalog_match(line.name, catalog)
                    if match is None:
                        continue
                    line.name = clean_text(match.get("name"))
                    line.price = as_number(match.get("price"))
                    item.matches.setdefault(collection, {})[position] = {
                        "matched_id": clean_text(match.get("id")),
                        "matched_price": line.price,
                    }
                    matched_count += 1
        return matched_count

    def confirm(self, repo) -> ImportResult:
        errors = self.confirm_errors()
        if not self.items:
            raise ValueError("Nothing to import.")
        if errors:
            raise ValueError("; ".join(errors))
        result = ImportResult()
        # created rows leave the session; failed rows stay, re-indexed, for a retry
        remaining: list[ReviewItem] = []
        for item in self.items:
            tour = item.tour
            try:
                created = repo.create_tour(tour)
            except ValueError as exc:
                result.failed.append({"index": len(remaining), "tour_code": tour.tour_code, "error": str(exc)})
                remaining.append(item)
                continue
            result.created.append({"id": created.id, "tour_code": created.tour_code})
        self.items = remaining
        LOGGER.info(
            "Import confirmed. created=%s failed=%s",
            len(result.created),
            len(result.failed),
            extra={
                "event": "import_confirmed",
                "created_count": len(result.created),
                "failed_count": len(result.failed),
            },
        )
        return result


def _catalog_match(name: str, catalog: list[dict[str, Any]]) -> dict[str, Any] | None:
    normalized = normalize_entity_name(name)
    for entry in catalog:
        if normalize_entity_name(entry.get("name")) == normalized:
            return entry
    return fuzzy_best_match(name, catalog)
