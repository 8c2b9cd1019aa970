from __future__ import annotations

import sys
from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.domain.models import Allowance, Destination, Expense, Meal, Tour, TourSummary  # noqa: E402
from tour_ops_app.domain.totals import (  # noqa: E402
    calculate_tour_summary,
    clamp_guests,
    compute_tour_totals,
    grand_total,
    line_total,
)


def _tour(**overrides) -> Tour:
    values = {"tour_code": "T1", "adults": 2, "children": 1, "start_date": "2025-01-15", "end_date": "2025-01-20"}
    values.update(overrides)
    return Tour(**values).refresh_derived()


def test_missing_guest_count_uses_tour_total() -> None:
    tour = _tour()
    assert tour.total_guests == 3
    assert line_total(Destination(name="Hạ Long", price=100000, guests=None), tour.total_guests) == 300000


def test_clamp_guests_bounds_row_counts() -> None:
    assert clamp_guests(5, 3) == 3
    assert clamp_guests(-2, 3) == 0
    assert clamp_guests(2, 3) == 2
    assert clamp_guests(None, 3) == 3


def test_clamp_guests_is_unbounded_without_tour_guests() -> None:
    assert clamp_guests(7, 0) == 7
    assert clamp_guests(None, 0) == 0


def test_grand_total_sums_guest_priced_tabs_only() -> None:
    tour = _tour(
        destinations=[Destination(name="A", price=100000)],
        expenses=[Expense(name="Bus", price=50000, guests=1)],
        meals=[Meal(name="Lunch", price=20000, guests=10)],
        allowances=[Allowance(name="CTP", price=200000, quantity=2)],
    )

    totals = compute_tour_totals(tour)

    assert totals.destinations == 300000
    assert totals.expenses == 50000
    assert totals.meals == 60000
    assert totals.allowances == 400000
    assert totals.grand_total == 410000
    assert grand_total(tour) == 410000
    assert totals.total_tabs == 810000


def test_summary_chain_keeps_manual_inputs() -> None:
    tour = _tour(
        destinations=[Destination(name="A", price=100000)],
        summary=TourSummary(advance_payment=50000, collections_for_company=20000, company_tip=10000),
    )

    summary = calculate_tour_summary(tour)

    assert summary.total_tabs == 300000
    assert summary.total_after_advance == 250000
    assert summary.total_after_collections == 230000
    assert summary.total_after_tip == 240000
    assert summary.final_total == 240000
    assert summary.advance_payment == 50000


def test_line_total_accepts_plain_dicts() -> None:
    assert line_total({"price": "1,000", "guests": "2"}, 4) == 2000
