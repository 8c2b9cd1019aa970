from __future__ import annotations

import json
import logging
from typing import Any

from tour_ops_app.core.errors import EntityNotFoundError
from tour_ops_app.core.util import clean_text

LOGGER = logging.getLogger(__name__)


def _content_urls(raw: Any) -> list[str]:
    if isinstance(raw, (list, tuple)):
        return [clean_text(item) for item in raw if clean_text(item)]
    text = clean_text(raw)
    if not text:
        return []
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        return [text]
    if isinstance(loaded, list):
        return [clean_text(item) for item in loaded if clean_text(item)]
    return [text]


def _diary_record(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": clean_text(row.get("id")),
        "tour_ref": {
            "id": clean_text(row.get("tour_id")),
            "tour_code_at_booking": clean_text(row.get("tour_code_at_booking")),
        },
        "diary_type_ref": {
            "id": clean_text(row.get("diary_type_id")),
            "name_at_booking": clean_text(row.get("diary_type_name_at_booking")),
            "data_type": clean_text(row.get("diary_type_data_type")),
        },
        "content_type": clean_text(row.get("content_type")),
        "content_text": clean_text(row.get("content_text")),
        "content_urls": _content_urls(row.get("content_urls")),
        "created_at": clean_text(row.get("created_at")),
        "updated_at": clean_text(row.get("updated_at")),
    }


class RepositoryDiariesMixin:
    def list_tour_diaries(self, *, tour_id: str = "") -> list[dict[str, Any]]:
        statement = f"SELECT * FROM {self._table('tour_diaries')}"
        params: list[Any] = []
        if clean_text(tour_id):
            statement += " WHERE tour_id = %s"
            params.append(clean_text(tour_id))
        statement += " ORDER BY created_at DESC"
        return [_diary_record(row) for row in self._query_records(statement, params)]

    def get_tour_diary(self, diary_id: str) -> dict[str, Any]:
        rows = self._query_records(
            f"SELECT * FROM {self._table('tour_diaries')} WHERE id = %s",
            (clean_text(diary_id),),
        )
        if not rows:
            raise EntityNotFoundError("Tour diary", diary_id)
        return _diary_record(rows[0])

    def _diary_ref_values(self, payload: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if "tour_id" in payload:
            tour = self.get_tour(clean_text(payload.get("tour_id")))
            values["tour_id"] = tour.id
            values["tour_code_at_booking"] = tour.tour_code
        if "diary_type_id" in payload:
            diary_type = self.get_master("diary_types", clean_text(payload.get("diary_type_id")))
            values["diary_type_id"] = diary_type["id"]
            values["diary_type_name_at_booking"] = diary_type["name"]
            values["diary_type_data_type"] = diary_type["data_type"]
        return values

    def create_tour_diary(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not clean_text(payload.get("tour_id")):
            raise ValueError("Tour is required.")
        if not clean_text(payload.get("diary_type_id")):
            raise ValueError("Diary type is required.")
        values = self._diary_ref_values(payload)
        now = self._now()
        values.update(
            {
                "id": self._new_id("diary"),
                "content_type": clean_text(payload.get("content_type")) or values["diary_type_data_type"] or "text",
                "content_text": clean_text(payload.get("content_text")),
                "content_urls": json.dumps(_content_urls(payload.get("content_urls"))),
                "created_at": now,
                "updated_at": now,
            }
        )
        self.client.execute(*self._insert_statement("tour_diaries", values))
        LOGGER.info(
            "Created tour diary. id=%s tour_id=%s",
            values["id"],
            values["tour_id"],
            extra={"event": "tour_diary_created", "diary_id": values["id"], "tour_id": values["tour_id"]},
        )
        return self.get_tour_diary(values["id"])

    def update_tour_diary(self, diary_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        current = self.get_tour_diary(diary_id)
        values = self._diary_ref_values(patch)
        for key in ("content_type", "content_text"):
            if key in patch:
                values[key] = clean_text(patch.get(key))
        if "content_urls" in patch:
            values["content_urls"] = json.dumps(_content_urls(patch.get("content_urls")))
        if not values:
            return current
        values["updated_at"] = self._now()
        self.client.execute(
            *self._update_statement("tour_diaries", values, key_column="id", key_value=current["id"])
        )
        return self.get_tour_diary(current["id"])

    def delete_tour_diary(self, diary_id: str) -> None:
        current = self.get_tour_diary(diary_id)
        self.client.execute(f"DELETE FROM {self._table('tour_diaries')} WHERE id = %s", (current["id"],))
