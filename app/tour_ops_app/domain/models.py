from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime
from typing import Any

from tour_ops_app.core.util import as_number, as_optional_int, clean_text

ENTITY_STATUSES = ("active", "inactive")


def parse_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def iso_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ""


def days_between(start_date: Any, end_date: Any) -> int:
    """Inclusive day count of a tour, never below one."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None:
        return 1
    return max(1, (end - start).days + 1)


@dataclass
class EntityRef:
    id: str = ""
    name_at_booking: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.id)

    @classmethod
    def from_value(cls, value: Any) -> "EntityRef":
        if isinstance(value, EntityRef):
            return cls(value.id, value.name_at_booking)
        if isinstance(value, dict):
            return cls(
                id=clean_text(value.get("id")),
                name_at_booking=clean_text(value.get("name_at_booking", value.get("nameAtBooking"))),
            )
        return cls(id="", name_at_booking=clean_text(value))


@dataclass
class GuestLineItem:
    name: str = ""
    price: float = 0.0
    date: str = ""
    guests: int | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GuestLineItem":
        return cls(
            name=clean_text(payload.get("name")),
            price=as_number(payload.get("price")),
            date=iso_date(payload.get("date")),
            guests=as_optional_int(payload.get("guests")),
        )


class Destination(GuestLineItem):
    pass


class Expense(GuestLineItem):
    pass


class Meal(GuestLineItem):
    pass


@dataclass
class Allowance:
    name: str = ""
    price: float = 0.0
    date: str = ""
    quantity: int = 1

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Allowance":
        quantity = as_optional_int(payload.get("quantity"))
        return cls(
            name=clean_text(payload.get("name")),
            price=as_number(payload.get("price")),
            date=iso_date(payload.get("date")),
            quantity=quantity if quantity else 1,
        )


@dataclass
class Shopping:
    name: str = ""
    price: float = 0.0
    date: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Shopping":
        return cls(
            name=clean_text(payload.get("name")),
            price=as_number(payload.get("price")),
            date=iso_date(payload.get("date")),
        )


LINE_ITEM_TYPES: dict[str, type] = {
    "destinations": Destination,
    "expenses": Expense,
    "meals": Meal,
    "allowances": Allowance,
    "shoppings": Shopping,
}


@dataclass
class TourSummary:
    total_tabs: float = 0.0
    advance_payment: float = 0.0
    total_after_advance: float = 0.0
    company_tip: float = 0.0
    total_after_tip: float = 0.0
    collections_for_company: float = 0.0
    total_after_collections: float = 0.0
    final_total: float = 0.0

    @classmethod
    def from_dict(cls, payload: dict[str, Any] | None) -> "TourSummary":
        payload = payload or {}
        values = {}
        for item in fields(cls):
            camel = _camel(item.name)
            values[item.name] = as_number(payload.get(item.name, payload.get(camel)))
        return cls(**values)


@dataclass
class Tour:
    tour_code: str = ""
    company_ref: EntityRef = field(default_factory=EntityRef)
    guide_ref: EntityRef = field(default_factory=EntityRef)
    client_nationality_ref: EntityRef = field(default_factory=EntityRef)
    client_name: str = ""
    adults: int = 0
    children: int = 0
    total_guests: int = 0
    driver_name: str = ""
    client_phone: str = ""
    start_date: str = ""
    end_date: str = ""
    total_days: int = 1
    notes: str = ""
    destinations: list[Destination] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    meals: list[Meal] = field(default_factory=list)
    allowances: list[Allowance] = field(default_factory=list)
    shoppings: list[Shopping] = field(default_factory=list)
    summary: TourSummary = field(default_factory=TourSummary)
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def refresh_derived(self) -> "Tour":
        self.total_guests = int(self.adults or 0) + int(self.children or 0)
        self.total_days = days_between(self.start_date, self.end_date)
        return self

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Tour":
        tour = cls(
            id=clean_text(payload.get("id")),
            tour_code=clean_text(payload.get("tour_code")),
            company_ref=EntityRef.from_value(payload.get("company_ref")),
            guide_ref=EntityRef.from_value(payload.get("guide_ref")),
            client_nationality_ref=EntityRef.from_value(payload.get("client_nationality_ref")),
            client_name=clean_text(payload.get("client_name")),
            adults=as_optional_int(payload.get("adults")) or 0,
            children=as_optional_int(payload.get("children")) or 0,
            driver_name=clean_text(payload.get("driver_name")),
            client_phone=clean_text(payload.get("client_phone")),
            start_date=iso_date(payload.get("start_date")),
            end_date=iso_date(payload.get("end_date")),
            notes=clean_text(payload.get("notes")),
            summary=TourSummary.from_dict(payload.get("summary")),
            created_at=clean_text(payload.get("created_at")),
            updated_at=clean_text(payload.get("updated_at")),
        )
        for collection, item_type in LINE_ITEM_TYPES.items():
            rows = payload.get(collection) or []
            setattr(tour, collection, [item_type.from_dict(row) for row in rows if isinstance(row, dict)])
        return tour.refresh_derived()

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
