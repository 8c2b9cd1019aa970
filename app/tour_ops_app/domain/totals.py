"""Derived totals over a tour's line-item tabs.

Destination, expense and meal rows are charged per guest. A row without its
own guest count uses the tour's total; a row count is clamped into
``[0, total_guests]`` unless the tour has no guests recorded yet. Allowances
(CTP) are charged per unit quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from tour_ops_app.core.util import as_number, as_optional_int
from tour_ops_app.domain.models import Tour, TourSummary

GUEST_PRICED_TABS = ("destinations", "expenses", "meals")


@dataclass(frozen=True)
class TourTotals:
    destinations: float
    expenses: float
    meals: float
    allowances: float

    @property
    def grand_total(self) -> float:
        return self.destinations + self.expenses + self.meals

    @property
    def total_tabs(self) -> float:
        return self.grand_total + self.allowances

    def to_dict(self) -> dict[str, float]:
        return {
            "destinations": self.destinations,
            "expenses": self.expenses,
            "meals": self.meals,
            "allowances": self.allowances,
            "grand_total": self.grand_total,
            "total_tabs": self.total_tabs,
        }


def clamp_guests(guests: int | float | None, tour_guests: int) -> int | float:
    if guests is None or isinstance(guests, bool):
        return tour_guests
    if not tour_guests:
        return guests
    return min(max(guests, 0), tour_guests)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def line_total(item: Any, tour_guests: int) -> float:
    price = as_number(_field(item, "price"))
    return price * clamp_guests(as_optional_int(_field(item, "guests")), tour_guests)


def guest_tab_total(items: Iterable[Any], tour_guests: int) -> float:
    return sum((line_total(item, tour_guests) for item in items or []), 0.0)


def allowance_total(items: Iterable[Any]) -> float:
    total = 0.0
    for item in items or []:
        quantity = as_optional_int(_field(item, "quantity")) or 1
        total += as_number(_field(item, "price")) * quantity
    return total


def tour_guest_count(tour: Tour) -> int:
    return int(tour.total_guests or (int(tour.adults or 0) + int(tour.children or 0)))


def compute_tour_totals(tour: Tour) -> TourTotals:
    guests = tour_guest_count(tour)
    return TourTotals(
        destinations=guest_tab_total(tour.destinations, guests),
        expenses=guest_tab_total(tour.expenses, guests),
        meals=guest_tab_total(tour.meals, guests),
        allowances=allowance_total(tour.allowances),
    )


def grand_total(tour: Tour) -> float:
    return compute_tour_totals(tour).grand_total


def calculate_tour_summary(tour: Tour) -> TourSummary:
    """Settlement chain: tabs, minus advance, minus collections, plus company tip."""
    existing = tour.summary or TourSummary()
    total_tabs = compute_tour_totals(tour).total_tabs
    total_after_advance = total_tabs - existing.advance_payment
    total_after_collections = total_after_advance - existing.collections_for_company
    total_after_tip = total_after_collections + existing.company_tip
    return TourSummary(
        total_tabs=total_tabs,
        advance_payment=existing.advance_payment,
        total_after_advance=total_after_advance,
        company_tip=existing.company_tip,
        total_after_tip=total_after_tip,
        collections_for_company=existing.collections_for_company,
        total_after_collections=total_after_collections,
        final_total=total_after_tip,
    )
