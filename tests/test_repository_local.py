from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.core.errors import DuplicateEntityError, EntityNotFoundError  # noqa: E402
from tour_ops_app.repository_master import copy_name  # noqa: E402
from tour_ops_app.repository_tours import TourQuery  # noqa: E402
from tour_ops_app.web.core.runtime import get_repo  # noqa: E402


def _tour_payload(**overrides):
    payload = {
        "tour_code": "VA-2025-001",
        "company_ref": {"id": "company-seed-viet-a", "name_at_booking": "Việt Á"},
        "guide_ref": {"id": "guide-seed-cao-huu-tu", "name_at_booking": "Cao Hữu Tu"},
        "client_nationality_ref": {"id": "nationality-seed-fr", "name_at_booking": "France"},
        "client_name": "Dupont Family",
        "adults": 2,
        "children": 1,
        "start_date": "2025-03-01",
        "end_date": "2025-03-03",
        "destinations": [
            {"name": "Văn Miếu", "price": 30000, "date": "2025-03-02"},
            {"name": "Vịnh Hạ Long", "price": 290000, "date": "2025-03-01", "guests": 2},
        ],
        "allowances": [{"name": "CTP", "price": 100000, "date": "2025-03-01", "quantity": 2}],
        "summary": {"advance_payment": 500000, "collections_for_company": 50000, "company_tip": 20000},
    }
    payload.update(overrides)
    return payload


def test_runtime_tables_present_after_bootstrap(isolated_local_db) -> None:
    repo = get_repo()
    repo.ensure_runtime_tables()

    assert repo.config.use_local_db is True


def test_seeded_master_data_is_listed_and_searchable(isolated_local_db) -> None:
    repo = get_repo()

    companies = repo.list_master("companies")
    by_accentless = repo.list_master("companies", search="viet a")
    by_acronym = repo.list_master("guides", search="cht")

    assert {row["name"] for row in companies} >= {"Việt Á", "Saigon Tourist"}
    assert [row["id"] for row in by_accentless] == ["company-seed-viet-a"]
    assert [row["id"] for row in by_acronym] == ["guide-seed-cao-huu-tu"]


def test_master_create_rejects_casefold_duplicates(isolated_local_db) -> None:
    repo = get_repo()
    created = repo.create_master("provinces", {"name": "Đà Nẵng"})

    assert created["status"] == "active"
    assert "danang" in created["search_keywords"]
    with pytest.raises(DuplicateEntityError):
        repo.create_master("provinces", {"name": "đà nẵng"})


def test_master_update_toggle_and_delete(isolated_local_db) -> None:
    repo = get_repo()
    created = repo.create_master("shoppings", {"name": "Breakfast", "price": "80,000"})

    assert created["price"] == 80000.0
    updated = repo.update_master("shoppings", created["id"], {"name": "Buffet Breakfast"})
    assert updated["name"] == "Buffet Breakfast"
    assert "buffetbreakfast" in updated["search_keywords"]

    toggled = repo.toggle_master_status("shoppings", created["id"])
    assert toggled["status"] == "inactive"
    active_names = {row["name"] for row in repo.list_master("shoppings", status="active")}
    assert "Buffet Breakfast" not in active_names

    repo.delete_master("shoppings", created["id"])
    with pytest.raises(EntityNotFoundError):
        repo.get_master("shoppings", created["id"])


def test_master_ref_snapshot_round_trip(isolated_local_db) -> None:
    repo = get_repo()
    created = repo.create_master(
        "hotels",
        {
            "name": "Hạ Long Pearl",
            "room_type": "double",
            "price_per_night": 850000,
            "province_ref": {"id": "province-seed-quang-ninh", "name_at_booking": "Quảng Ninh"},
        },
    )

    assert created["province_ref"] == {"id": "province-seed-quang-ninh", "name_at_booking": "Quảng Ninh"}
    with pytest.raises(ValueError):
        repo.create_master("hotels", {"name": "Bad Room", "room_type": "penthouse"})


def test_duplicate_master_uses_copy_suffix(isolated_local_db) -> None:
    repo = get_repo()

    first = repo.duplicate_master("companies", "company-seed-viet-a")
    second = repo.duplicate_master("companies", "company-seed-viet-a")

    assert first["name"] == "Việt Á (Copy)"
    assert second["name"] == "Việt Á (Copy 2)"


def test_copy_name_skips_taken_names() -> None:
    assert copy_name("Lunch", set()) == "Lunch (Copy)"
    assert copy_name("Lunch", {"lunch (copy)", "lunch (copy 2)"}) == "Lunch (Copy 3)"


def test_bulk_create_is_all_or_nothing(isolated_local_db) -> None:
    repo = get_repo()

    created = repo.bulk_create_master("expense_categories", [{"name": "Hotel"}, {"name": "Tickets"}])
    assert sorted(row["name"] for row in created) == ["Hotel", "Tickets"]

    with pytest.raises(DuplicateEntityError):
        repo.bulk_create_master("expense_categories", [{"name": "Parking"}, {"name": "transportation"}])
    names = {row["name"] for row in repo.list_master("expense_categories")}
    assert "Parking" not in names


def test_delete_all_master_reports_count(isolated_local_db) -> None:
    repo = get_repo()

    assert repo.delete_all_master("nationalities") == 4
    assert repo.list_master("nationalities") == []


def test_unknown_master_type_is_rejected(isolated_local_db) -> None:
    with pytest.raises(ValueError):
        get_repo().list_master("suppliers")


def test_create_tour_derives_counts_and_summary(isolated_local_db) -> None:
    repo = get_repo()
    tour = repo.create_tour(_tour_payload())

    assert tour.id.startswith("tour-")
    assert tour.total_guests == 3
    assert tour.total_days == 3
    assert [item.name for item in tour.destinations] == ["Vịnh Hạ Long", "Văn Miếu"]
    assert tour.destinations[0].guests == 2
    assert tour.destinations[1].guests is None
    assert tour.company_ref.name_at_booking == "Việt Á"
    # 290000 * 2 + 30000 * 3 + 100000 * 2
    assert tour.summary.total_tabs == 870000
    assert tour.summary.total_after_advance == 370000
    assert tour.summary.total_after_collections == 320000
    assert tour.summary.final_total == 340000


def test_create_tour_validates_dates_and_code(isolated_local_db) -> None:
    repo = get_repo()
    repo.create_tour(_tour_payload())

    with pytest.raises(DuplicateEntityError):
        repo.create_tour(_tour_payload(tour_code="va-2025-001"))
    with pytest.raises(ValueError):
        repo.create_tour(_tour_payload(tour_code="VA-2", start_date="2025-03-05", end_date="2025-03-01"))
    with pytest.raises(ValueError):
        repo.create_tour(_tour_payload(tour_code=""))


def test_list_tours_filters_and_paginates(isolated_local_db) -> None:
    repo = get_repo()
    repo.create_tour(_tour_payload())
    repo.create_tour(
        _tour_payload(
            tour_code="ST-2025-002",
            client_name="Tanaka",
            company_ref={"id": "company-seed-saigontourist", "name_at_booking": "Saigon Tourist"},
            start_date="2025-04-10",
            end_date="2025-04-12",
        )
    )

    everything = repo.list_tours()
    by_company = repo.list_tours(TourQuery(company_id="company-seed-saigontourist"))
    by_client = repo.list_tours(TourQuery(client_name="dupont"))
    in_march = repo.list_tours(TourQuery(start_date="2025-03-01", end_date="2025-03-31"))
    oldest_first = repo.list_tours(TourQuery(sort_desc=False, limit=1))

    assert [row["tour_code"] for row in everything] == ["ST-2025-002", "VA-2025-001"]
    assert "destinations" not in everything[0]
    assert [row["tour_code"] for row in by_company] == ["ST-2025-002"]
    assert [row["tour_code"] for row in by_client] == ["VA-2025-001"]
    assert [row["tour_code"] for row in in_march] == ["VA-2025-001"]
    assert [row["tour_code"] for row in oldest_first] == ["VA-2025-001"]


def test_update_tour_recomputes_summary(isolated_local_db) -> None:
    repo = get_repo()
    tour = repo.create_tour(_tour_payload())

    updated = repo.update_tour(
        tour.id,
        {
            "children": 0,
            "summary": {"advance_payment": 0},
            "allowances": [],
        },
    )

    assert updated.total_guests == 2
    # 290000 * 2 + 30000 * 2
    assert updated.summary.total_tabs == 640000
    assert updated.summary.advance_payment == 0
    assert updated.summary.collections_for_company == 50000
    assert updated.allowances == []


def test_line_item_crud_keeps_summary_current(isolated_local_db) -> None:
    repo = get_repo()
    tour = repo.create_tour(_tour_payload(destinations=[], allowances=[]))

    with_meal = repo.add_line_item(tour.id, "meals", {"name": "Lunch", "price": 150000, "date": "2025-03-02"})
    assert with_meal.summary.total_tabs == 450000

    edited = repo.update_line_item(tour.id, "meals", 0, {"guests": 1})
    assert edited.meals[0].guests == 1
    assert edited.summary.total_tabs == 150000

    assert repo.list_line_items(tour.id, "meals")[0]["name"] == "Lunch"

    emptied = repo.remove_line_item(tour.id, "meals", 0)
    assert emptied.meals == []
    assert emptied.summary.total_tabs == 0

    with pytest.raises(EntityNotFoundError):
        repo.remove_line_item(tour.id, "meals", 0)
    with pytest.raises(ValueError):
        repo.add_line_item(tour.id, "souvenirs", {"name": "Hat"})


def test_duplicate_and_delete_tour(isolated_local_db) -> None:
    repo = get_repo()
    tour = repo.create_tour(_tour_payload())

    copy = repo.duplicate_tour(tour.id)
    assert copy.tour_code == "VA-2025-001 (Copy)"
    assert len(copy.destinations) == 2

    repo.delete_tour(tour.id)
    with pytest.raises(EntityNotFoundError):
        repo.get_tour(tour.id)
    assert repo.delete_all_tours() == 1
    assert repo.list_tours() == []


def test_tour_diary_snapshots_refs(isolated_local_db) -> None:
    repo = get_repo()
    tour = repo.create_tour(_tour_payload())

    diary = repo.create_tour_diary(
        {
            "tour_id": tour.id,
            "diary_type_id": "diary-type-seed-photo",
            "content_urls": ["https://example.test/a.jpg"],
        }
    )

    assert diary["tour_ref"]["tour_code_at_booking"] == "VA-2025-001"
    assert diary["diary_type_ref"]["data_type"] == "image"
    assert diary["content_type"] == "image"
    assert diary["content_urls"] == ["https://example.test/a.jpg"]

    updated = repo.update_tour_diary(diary["id"], {"content_text": "Sunset at the bay"})
    assert updated["content_text"] == "Sunset at the bay"
    assert [row["id"] for row in repo.list_tour_diaries(tour_id=tour.id)] == [diary["id"]]

    repo.delete_tour_diary(diary["id"])
    assert repo.list_tour_diaries(tour_id=tour.id) == []


def test_dump_tables_covers_master_and_tour_tables(isolated_local_db) -> None:
    repo = get_repo()
    repo.create_tour(_tour_payload())

    dump = repo.dump_tables()

    assert list(dump)[0] == "guides"
    assert len(dump["companies"].index) == 2
    assert len(dump["tours"].index) == 1
    assert len(dump["tour_destinations"].index) == 2
