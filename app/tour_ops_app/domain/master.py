from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tour_ops_app.core.util import as_number, clean_text
from tour_ops_app.domain.models import ENTITY_STATUSES, EntityRef

DIARY_DATA_TYPES = ("text", "image", "video", "number", "date", "boolean", "select")
ROOM_TYPES = ("single", "double", "twin", "triple", "family", "suite", "other")
RESTAURANT_TYPES = ("asian", "european", "vietnamese", "seafood", "vegetarian", "other")
SHOP_TYPES = ("jewelry", "clothing", "souvenir", "handicraft", "food", "other")


@dataclass(frozen=True)
class MasterEntitySpec:
    entity_type: str
    table: str
    label: str
    text_fields: tuple[str, ...] = ()
    number_fields: tuple[str, ...] = ()
    ref_fields: dict[str, str] = field(default_factory=dict)
    choices: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def ref_columns(self, ref_field: str) -> tuple[str, str]:
        prefix = ref_field[: -len("_ref")]
        return f"{prefix}_id", f"{prefix}_name_at_booking"

    @property
    def columns(self) -> tuple[str, ...]:
        cols = ["id", "name", "status", "search_keywords"]
        cols.extend(self.text_fields)
        cols.extend(self.number_fields)
        for ref_field in self.ref_fields:
            cols.extend(self.ref_columns(ref_field))
        cols.extend(["created_at", "updated_at"])
        return tuple(cols)

    @property
    def editable_fields(self) -> tuple[str, ...]:
        return ("name", "status", *self.text_fields, *self.number_fields, *self.ref_fields)

    def clean_payload(self, payload: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        """Coerce an incoming create/patch payload into column values.

        Unknown keys are ignored. Refs arrive as ``{"id", "name_at_booking"}``
        and are split into their two snapshot columns.
        """
        values: dict[str, Any] = {}
        for key in self.editable_fields:
            if partial and key not in payload:
                continue
            raw = payload.get(key)
            if key in self.ref_fields:
                ref = EntityRef.from_value(raw)
                id_col, name_col = self.ref_columns(key)
                values[id_col] = ref.id
                values[name_col] = ref.name_at_booking
            elif key in self.number_fields:
                values[key] = as_number(raw)
            elif key == "status":
                status = clean_text(raw).lower() or "active"
                if status not in ENTITY_STATUSES:
                    raise ValueError(f"status must be one of: {', '.join(ENTITY_STATUSES)}.")
                values[key] = status
            else:
                values[key] = clean_text(raw)
            allowed = self.choices.get(key)
            if allowed and values.get(key) and values[key] not in allowed:
                raise ValueError(f"{key} must be one of: {', '.join(allowed)}.")
        if "name" in values and not values["name"]:
            raise ValueError(f"{self.label} name is required.")
        return values

    def row_to_record(self, row: dict[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": clean_text(row.get("id")),
            "name": clean_text(row.get("name")),
            "status": clean_text(row.get("status")) or "active",
            "search_keywords": _split_keywords(row.get("search_keywords")),
            "created_at": clean_text(row.get("created_at")),
            "updated_at": clean_text(row.get("updated_at")),
        }
        for key in self.text_fields:
            record[key] = clean_text(row.get(key))
        for key in self.number_fields:
            record[key] = as_number(row.get(key))
        for ref_field in self.ref_fields:
            id_col, name_col = self.ref_columns(ref_field)
            record[ref_field] = {
                "id": clean_text(row.get(id_col)),
                "name_at_booking": clean_text(row.get(name_col)),
            }
        return record


def _split_keywords(raw: Any) -> list[str]:
    text = clean_text(raw)
    if not text:
        return []
    return [item for item in text.split(" ") if item]


def join_keywords(keywords: list[str]) -> str:
    return " ".join(keywords)


MASTER_ENTITIES: dict[str, MasterEntitySpec] = {
    spec.entity_type: spec
    for spec in (
        MasterEntitySpec("guides", "guides", "Guide", text_fields=("phone", "note")),
        MasterEntitySpec(
            "companies",
            "companies",
            "Company",
            text_fields=("contact_name", "phone", "email", "note"),
        ),
        MasterEntitySpec("nationalities", "nationalities", "Nationality", text_fields=("iso2", "emoji")),
        MasterEntitySpec("provinces", "provinces", "Province"),
        MasterEntitySpec(
            "tourist_destinations",
            "tourist_destinations",
            "Tourist destination",
            number_fields=("price",),
            ref_fields={"province_ref": "provinces"},
        ),
        MasterEntitySpec("shoppings", "shoppings", "Shopping", number_fields=("price",)),
        MasterEntitySpec("expense_categories", "expense_categories", "Expense category"),
        MasterEntitySpec(
            "detailed_expenses",
            "detailed_expenses",
            "Detailed expense",
            number_fields=("price",),
            ref_fields={"category_ref": "expense_categories"},
        ),
        MasterEntitySpec(
            "diary_types",
            "diary_types",
            "Diary type",
            text_fields=("data_type",),
            choices={"data_type": DIARY_DATA_TYPES},
        ),
        MasterEntitySpec(
            "restaurants",
            "restaurants",
            "Restaurant",
            text_fields=("restaurant_type", "phone", "address", "note"),
            number_fields=("commission_for_guide",),
            ref_fields={"province_ref": "provinces"},
            choices={"restaurant_type": RESTAURANT_TYPES},
        ),
        MasterEntitySpec(
            "shop_places",
            "shop_places",
            "Shop place",
            text_fields=("shop_type", "phone", "address", "note"),
            number_fields=("commission_for_guide",),
            ref_fields={"province_ref": "provinces"},
            choices={"shop_type": SHOP_TYPES},
        ),
        MasterEntitySpec(
            "hotels",
            "hotels",
            "Hotel",
            text_fields=("owner_name", "owner_phone", "room_type", "address", "note"),
            number_fields=("price_per_night",),
            ref_fields={"province_ref": "provinces"},
            choices={"room_type": ROOM_TYPES},
        ),
    )
}


def get_master_spec(entity_type: str) -> MasterEntitySpec:
    key = clean_text(entity_type).lower().replace("-", "_")
    spec = MASTER_ENTITIES.get(key)
    if spec is None:
        raise ValueError(f"Unknown master entity type: {entity_type}")
    return spec
