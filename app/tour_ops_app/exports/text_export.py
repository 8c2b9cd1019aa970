from __future__ import annotations

from datetime import datetime
import re
from typing import Any

from tour_ops_app.core.util import as_optional_int
from tour_ops_app.domain.models import Tour, iso_date, parse_date

SUMMARY_LABELS = (
    ("total_tabs", "Total Tabs"),
    ("advance_payment", "Advance Payment"),
    ("total_after_advance", "Total After Advance"),
    ("company_tip", "Company Tip"),
    ("total_after_tip", "Total After Tip"),
    ("collections_for_company", "Collections for Company"),
    ("total_after_collections", "Total After Collections"),
    ("final_total", "Final Total"),
)

_DATES_LINE = re.compile(r"^Dates: (?P<start>\S+) → (?P<end>\S+) \((?P<days>N/A|\d+) day\(s\)\)$")
_GUESTS_LINE = re.compile(
    r"^Guests: (?P<adults>\d+) adult\(s\), (?P<children>\d+) child\(ren\), total (?P<total>\d+)$"
)
_SCALAR_LABELS = {
    "Tour Code": "tour_code",
    "Client": "client_name",
    "Nationality": "nationality",
    "Company": "company",
    "Guide": "guide",
    "Driver": "driver_name",
    "Client Phone": "client_phone",
}


def format_amount(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return "N/A"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "N/A"
    text = f"{number:,.2f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def format_display_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else "N/A"


def _or_na(value: str) -> str:
    return value if value else "N/A"


def _section(lines: list[str], title: str, items: list[str]) -> None:
    lines.extend(["", f"{title}:"])
    if not items:
        lines.append("- None")
        return
    lines.extend(f"- {item}" for item in items)


def export_tour_text(tour: Tour, *, generated_at: datetime | None = None) -> str:
    total_guests = tour.total_guests or (tour.adults + tour.children)
    lines = [
        f"Tour Code: {_or_na(tour.tour_code)}",
        f"Client: {_or_na(tour.client_name)}",
        f"Nationality: {_or_na(tour.client_nationality_ref.name_at_booking)}",
        f"Company: {_or_na(tour.company_ref.name_at_booking)}",
        f"Guide: {_or_na(tour.guide_ref.name_at_booking)}",
        f"Driver: {_or_na(tour.driver_name)}",
        f"Client Phone: {_or_na(tour.client_phone)}",
        (
            f"Dates: {format_display_date(tour.start_date)} → {format_display_date(tour.end_date)} "
            f"({tour.total_days or 'N/A'} day(s))"
        ),
        f"Guests: {tour.adults} adult(s), {tour.children} child(ren), total {total_guests}",
    ]
    for title, collection in (("Destinations", "destinations"), ("Expenses", "expenses"), ("Meals", "meals")):
        _section(
            lines,
            title,
            [
                f"{format_display_date(item.date)} • {item.name} - {format_amount(item.price)}"
                for item in getattr(tour, collection)
            ],
        )
    _section(
        lines,
        "Allowances",
        [
            f"{format_display_date(item.date)} • {item.name} - {format_amount(item.price)} x {item.quantity}"
            for item in tour.allowances
        ],
    )
    _section(
        lines,
        "Summary",
        [f"{label}: {format_amount(getattr(tour.summary, key))}" for key, label in SUMMARY_LABELS],
    )
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    lines.extend(["", f"Generated on: {stamp}"])
    return "\n".join(lines)


def parse_tour_text(text: str) -> dict[str, Any]:
    """Read the header block of a text export back into tour scalar fields."""
    parsed: dict[str, Any] = {}
    for raw_line in str(text or "").splitlines():
        line = raw_line.strip()
        if not line:
            break
        dates = _DATES_LINE.match(line)
        if dates:
            parsed["start_date"] = iso_date(dates.group("start"))
            parsed["end_date"] = iso_date(dates.group("end"))
            parsed["total_days"] = as_optional_int(dates.group("days"))
            continue
        guests = _GUESTS_LINE.match(line)
        if guests:
            parsed["adults"] = int(guests.group("adults"))
            parsed["children"] = int(guests.group("children"))
            parsed["total_guests"] = int(guests.group("total"))
            continue
        label, sep, value = line.partition(": ")
        if sep and label in _SCALAR_LABELS:
            parsed[_SCALAR_LABELS[label]] = "" if value == "N/A" else value
    return parsed


def text_export_filename(tour: Tour, *, today: datetime | None = None) -> str:
    stamp = (today or datetime.now()).strftime("%Y-%m-%d")
    return f"tour-{tour.tour_code}-{stamp}.txt"
