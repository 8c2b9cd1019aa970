"""Excel workbook export and re-import for a single tour.

The ``Tour Info`` sheet is a two-column Field/Value table; every line-item
collection gets its own sheet. Dates are written as ISO text so they read back
without Excel date coercion.
"""

from __future__ import annotations

import io
from typing import Any

import pandas as pd

from tour_ops_app.core.errors import ImportPayloadError
from tour_ops_app.core.util import as_number, as_optional_int, clean_text
from tour_ops_app.domain.models import Tour
from tour_ops_app.domain.totals import line_total, tour_guest_count

EXCEL_ENGINE = "openpyxl"
TOUR_INFO_SHEET = "Tour Info"
INFO_FIELDS = (
    ("Tour Code", "tour_code"),
    ("Client Name", "client_name"),
    ("Company", "company"),
    ("Guide", "guide"),
    ("Nationality", "nationality"),
    ("Adults", "adults"),
    ("Children", "children"),
    ("Total Guests", "total_guests"),
    ("Driver", "driver_name"),
    ("Client Phone", "client_phone"),
    ("Start Date", "start_date"),
    ("End Date", "end_date"),
    ("Total Days", "total_days"),
    ("Notes", "notes"),
    ("Advance Payment", "advance_payment"),
    ("Company Tip", "company_tip"),
    ("Collections for Company", "collections_for_company"),
    ("Final Total", "final_total"),
)
ITEM_SHEETS = {
    "destinations": "Destinations",
    "expenses": "Expenses",
    "meals": "Meals",
    "allowances": "Allowances",
    "shoppings": "Shoppings",
}
_REF_FIELDS = {
    "company": "company_ref",
    "guide": "guide_ref",
    "nationality": "client_nationality_ref",
}
_SUMMARY_INPUTS = ("advance_payment", "company_tip", "collections_for_company")


def _info_value(tour: Tour, key: str) -> Any:
    if key in _REF_FIELDS:
        return getattr(tour, _REF_FIELDS[key]).name_at_booking
    if hasattr(tour.summary, key):
        return getattr(tour.summary, key)
    return getattr(tour, key)


def _item_frame(tour: Tour, collection: str) -> pd.DataFrame:
    guests = tour_guest_count(tour)
    rows = []
    for item in getattr(tour, collection):
        row: dict[str, Any] = {"Name": item.name, "Date": item.date, "Price": item.price}
        if collection == "allowances":
            row["Quantity"] = item.quantity
            row["Total"] = item.price * item.quantity
        elif collection != "shoppings":
            row["Guests"] = item.guests
            row["Total"] = line_total(item, guests)
        rows.append(row)
    columns = ["Name", "Date", "Price"]
    if collection == "allowances":
        columns += ["Quantity", "Total"]
    elif collection != "shoppings":
        columns += ["Guests", "Total"]
    return pd.DataFrame(rows, columns=columns)


def export_tour_workbook(tour: Tour) -> bytes:
    info = pd.DataFrame(
        [{"Field": label, "Value": _info_value(tour, key)} for label, key in INFO_FIELDS],
        columns=["Field", "Value"],
    )
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine=EXCEL_ENGINE) as writer:
        info.to_excel(writer, sheet_name=TOUR_INFO_SHEET, index=False)
        for collection, sheet_name in ITEM_SHEETS.items():
            _item_frame(tour, collection).to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def _sheet_items(frame: pd.DataFrame, collection: str) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    for record in frame.to_dict("records"):
        name = clean_text(record.get("Name"))
        if not name:
            continue
        item = {
            "name": name,
            "date": clean_text(record.get("Date")),
            "price": as_number(record.get("Price")),
        }
        if collection == "allowances":
            item["quantity"] = as_optional_int(record.get("Quantity")) or 1
        elif collection != "shoppings":
            item["guests"] = as_optional_int(record.get("Guests"))
        items.append(item)
    return items


def read_tour_workbook(content: bytes) -> dict[str, Any]:
    """Read a workbook written by :func:`export_tour_workbook` into a tour payload.

    References come back as unresolved name snapshots.
    """
    try:
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, engine=EXCEL_ENGINE, dtype=object)
    except Exception as exc:
        raise ImportPayloadError(f"Unreadable workbook: {exc}") from exc
    info_frame = sheets.get(TOUR_INFO_SHEET)
    if info_frame is None or not {"Field", "Value"}.issubset(info_frame.columns):
        raise ImportPayloadError(f"Workbook is missing the '{TOUR_INFO_SHEET}' sheet.")

    labels = dict(INFO_FIELDS)
    info = {
        labels[clean_text(row["Field"])]: row["Value"]
        for row in info_frame.to_dict("records")
        if clean_text(row.get("Field")) in labels
    }
    payload: dict[str, Any] = {
        "tour_code": clean_text(info.get("tour_code")),
        "client_name": clean_text(info.get("client_name")),
        "adults": as_optional_int(info.get("adults")) or 0,
        "children": as_optional_int(info.get("children")) or 0,
        "driver_name": clean_text(info.get("driver_name")),
        "client_phone": clean_text(info.get("client_phone")),
        "start_date": clean_text(info.get("start_date")),
        "end_date": clean_text(info.get("end_date")),
        "notes": clean_text(info.get("notes")),
        "summary": {key: as_number(info.get(key)) for key in _SUMMARY_INPUTS},
    }
    for key, ref_field in _REF_FIELDS.items():
        payload[ref_field] = {"id": "", "name_at_booking": clean_text(info.get(key))}
    for collection, sheet_name in ITEM_SHEETS.items():
        frame = sheets.get(sheet_name)
        payload[collection] = [] if frame is None else _sheet_items(frame, collection)
    return payload


def workbook_filename(tour: Tour) -> str:
    return f"tour-{tour.tour_code}.xlsx"
