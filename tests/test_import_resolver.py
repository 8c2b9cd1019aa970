from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.core.errors import ImportPayloadError  # noqa: E402
from tour_ops_app.imports.entity_cache import build_entity_caches  # noqa: E402
from tour_ops_app.imports.resolver import (  # noqa: E402
    DEFAULT_CLIENT_NAME,
    fuzzy_distance,
    parse_import_text,
    resolve_ref,
    sample_import_payload,
    transform_import_payload,
    transform_imported_tour,
    validate_import_payload,
)


@pytest.fixture()
def caches():
    return build_entity_caches(
        companies=[{"id": "c1", "name": "Việt Á"}, {"id": "c2", "name": "Saigon Tourist"}],
        guides=[{"id": "g1", "name": "Cao Hữu Tu"}],
        nationalities=[
            {"id": "n1", "name": "Việt Nam", "iso2": "VN"},
            {"id": "n2", "name": "France", "iso2": "FR"},
        ],
    )


def test_company_resolves_ignoring_accents(caches) -> None:
    ref = resolve_ref(caches, "company", "viet a")

    assert ref.id == "c1"
    assert ref.name_at_booking == "Việt Á"


def test_exact_match_wins_over_closer_fuzzy_candidate() -> None:
    caches = build_entity_caches(
        companies=[{"id": "fuzzy", "name": "Saigon Tourists"}, {"id": "exact", "name": "SAIGON  tourist!"}],
        guides=[],
        nationalities=[],
    )

    assert resolve_ref(caches, "company", "Saigon Tourist").id == "exact"


def test_fuzzy_match_tolerates_typos(caches) -> None:
    assert resolve_ref(caches, "guide", "Cao Huu Tuu").id == "g1"


def test_nationality_resolves_by_iso_code(caches) -> None:
    assert resolve_ref(caches, "nationality", "fr").id == "n2"


def test_unmatched_name_keeps_raw_snapshot(caches) -> None:
    ref = resolve_ref(caches, "guide", "Trần Thị Bích")

    assert ref.id == ""
    assert ref.name_at_booking == "Trần Thị Bích"
    assert ref.resolved is False


def test_fuzzy_distance_bounds() -> None:
    assert fuzzy_distance("Việt Á", "viet a") == 0.0
    assert fuzzy_distance("", "viet a") == 1.0


def test_transform_applies_defaults_and_aliases(caches) -> None:
    imported = transform_imported_tour(
        {
            "tour": {
                "tourCode": "VN-001",
                "clientNationality": "France",
                "adults": "2",
                "children": 1,
                "startDate": "15/01/2025",
                "endDate": "2025-01-20",
            },
            "subcollections": {
                "destinations": [{"name": "Hạ Long", "price": 100000, "date": "2025-01-16"}],
                "summary": {"advancePayment": 50000},
            },
        },
        caches,
    )
    tour = imported.tour

    assert tour.tour_code == "VN-001"
    assert tour.company_ref.id == "c1"
    assert tour.guide_ref.id == "g1"
    assert tour.client_nationality_ref.id == "n2"
    assert tour.client_name == DEFAULT_CLIENT_NAME
    assert tour.start_date == "2025-01-15"
    assert tour.total_guests == 3
    assert tour.total_days == 6
    assert tour.destinations[0].name == "Hạ Long"
    assert tour.summary.advance_payment == 50000
    assert imported.raw.company == "Việt Á"


def test_parse_import_text_wraps_single_object() -> None:
    assert parse_import_text(b'{"tour": {"tourCode": "A"}}') == [{"tour": {"tourCode": "A"}}]


def test_parse_import_text_rejects_invalid_json() -> None:
    with pytest.raises(ImportPayloadError, match="Invalid JSON format"):
        parse_import_text("[{")


def test_invalid_item_blocks_whole_batch(caches) -> None:
    with pytest.raises(ImportPayloadError, match="Tour 2: Invalid tour data structure"):
        transform_import_payload([{"tour": {"tourCode": "A"}}, "oops"], caches)


def test_empty_payload_is_rejected() -> None:
    with pytest.raises(ImportPayloadError):
        validate_import_payload([])


def test_sample_payload_transforms_cleanly(caches) -> None:
    imported = transform_import_payload(sample_import_payload(), caches)

    assert len(imported) == 1
    assert imported[0].tour.tour_code == "SAMPLE001"
    assert imported[0].tour.company_ref.id == "c1"


def test_out_of_range_numbers_are_treated_as_missing(caches) -> None:
    items = parse_import_text(
        '[{"tour": {"tourCode": "H-1", "adults": 1e999, "children": "1e400"},'
        ' "subcollections": {"meals": [{"name": "Lunch", "price": "inf", "guests": "-inf"}]}}]'
    )

    tour = transform_import_payload(items, caches)[0].tour

    assert (tour.adults, tour.children, tour.total_guests) == (0, 0, 0)
    assert tour.meals[0].price == 0.0
    assert tour.meals[0].guests is None
