from __future__ import annotations

import logging
from typing import Any

from tour_ops_app.core.errors import DuplicateEntityError, EntityNotFoundError
from tour_ops_app.core.util import clean_text
from tour_ops_app.domain.master import MasterEntitySpec, get_master_spec, join_keywords
from tour_ops_app.domain.models import ENTITY_STATUSES
from tour_ops_app.domain.text import generate_search_keywords, normalize_entity_name

LOGGER = logging.getLogger(__name__)


def copy_name(name: str, taken: set[str]) -> str:
    """First ``name (Copy)`` / ``name (Copy N)`` not present in ``taken`` (casefolded)."""
    candidate = f"{name} (Copy)"
    counter = 2
    while candidate.casefold() in taken:
        candidate = f"{name} (Copy {counter})"
        counter += 1
    return candidate


class RepositoryMasterMixin:
    def _master_rows(self, spec: MasterEntitySpec, *, status: str = "") -> list[dict[str, Any]]:
        statement = f"SELECT * FROM {self._table(spec.table)}"
        params: list[Any] = []
        if status:
            statement += " WHERE status = %s"
            params.append(status)
        statement += " ORDER BY name"
        return self._query_records(statement, params)

    def _taken_names(self, spec: MasterEntitySpec, *, exclude_id: str = "") -> set[str]:
        frame = self.client.query(f"SELECT id, name FROM {self._table(spec.table)}")
        return {
            clean_text(row["name"]).casefold()
            for row in frame.to_dict("records")
            if clean_text(row["id"]) != exclude_id
        }

    def list_master(self, entity_type: str, *, search: str = "", status: str = "") -> list[dict[str, Any]]:
        spec = get_master_spec(entity_type)
        status = clean_text(status).lower()
        if status and status not in ENTITY_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(ENTITY_STATUSES)}.")
        records = [spec.row_to_record(row) for row in self._master_rows(spec, status=status)]
        needle = normalize_entity_name(search)
        if not needle:
            return records
        compact = needle.replace(" ", "")
        return [
            record
            for record in records
            if needle in normalize_entity_name(record["name"])
            or any(keyword.startswith(compact) for keyword in record["search_keywords"])
        ]

    def get_master(self, entity_type: str, entity_id: str) -> dict[str, Any]:
        spec = get_master_spec(entity_type)
        rows = self._query_records(
            f"SELECT * FROM {self._table(spec.table)} WHERE id = %s",
            (clean_text(entity_id),),
        )
        if not rows:
            raise EntityNotFoundError(spec.label, entity_id)
        return spec.row_to_record(rows[0])

    def _prepare_master_insert(self, spec: MasterEntitySpec, payload: dict[str, Any]) -> dict[str, Any]:
        values = spec.clean_payload(payload, partial=False)
        now = self._now()
        values["id"] = self._new_id(spec.entity_type[:3])
        values["search_keywords"] = join_keywords(generate_search_keywords(values["name"]))
        values["created_at"] = now
        values["updated_at"] = now
        return values

    def create_master(self, entity_type: str, payload: dict[str, Any]) -> dict[str, Any]:
        spec = get_master_spec(entity_type)
        values = self._prepare_master_insert(spec, payload)
        if values["name"].casefold() in self._taken_names(spec):
            raise DuplicateEntityError(spec.label, values["name"])
        self.client.execute(*self._insert_statement(spec.table, values))
        LOGGER.info(
            "Created %s. id=%s",
            spec.entity_type,
            values["id"],
            extra={"event": "master_created", "entity_type": spec.entity_type, "entity_id": values["id"]},
        )
        return self.get_master(spec.entity_type, values["id"])

    def update_master(self, entity_type: str, entity_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        spec = get_master_spec(entity_type)
        current = self.get_master(spec.entity_type, entity_id)
        values = spec.clean_payload(patch, partial=True)
        if "name" in values and values["name"] != current["name"]:
            if values["name"].casefold() in self._taken_names(spec, exclude_id=current["id"]):
                raise DuplicateEntityError(spec.label, values["name"])
            values["search_keywords"] = join_keywords(generate_search_keywords(values["name"]))
        if not values:
            return current
        values["updated_at"] = self._now()
        self.client.execute(
            *self._update_statement(spec.table, values, key_column="id", key_value=current["id"])
        )
        return self.get_master(spec.entity_type, current["id"])

    def toggle_master_status(self, entity_type: str, entity_id: str) -> dict[str, Any]:
        current = self.get_master(entity_type, entity_id)
        next_status = "inactive" if current["status"] == "active" else "active"
        return self.update_master(entity_type, entity_id, {"status": next_status})

    def delete_master(self, entity_type: str, entity_id: str) -> None:
        spec = get_master_spec(entity_type)
        current = self.get_master(spec.entity_type, entity_id)
        self.client.execute(f"DELETE FROM {self._table(spec.table)} WHERE id = %s", (current["id"],))
        LOGGER.info(
            "Deleted %s. id=%s",
            spec.entity_type,
            current["id"],
            extra={"event": "master_deleted", "entity_type": spec.entity_type, "entity_id": current["id"]},
        )

    def duplicate_master(self, entity_type: str, entity_id: str) -> dict[str, Any]:
        spec = get_master_spec(entity_type)
        current = self.get_master(spec.entity_type, entity_id)
        payload = {key: current.get(key) for key in spec.editable_fields}
        payload["name"] = copy_name(current["name"], self._taken_names(spec))
        return self.create_master(spec.entity_type, payload)

    def bulk_create_master(self, entity_type: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """All-or-nothing insert. Rejects names already stored or repeated within the batch."""
        spec = get_master_spec(entity_type)
        if not rows:
            return []
        prepared: list[dict[str, Any]] = []
        taken = self._taken_names(spec)
        seen: set[str] = set()
        duplicates: list[str] = []
        for index, row in enumerate(rows, start=1):
            if not isinstance(row, dict):
                raise ValueError(f"Row {index}: expected an object.")
            try:
                values = self._prepare_master_insert(spec, row)
            except ValueError as exc:
                raise ValueError(f"Row {index}: {exc}") from exc
            key = values["name"].casefold()
            if key in taken or key in seen:
                duplicates.append(values["name"])
            seen.add(key)
            prepared.append(values)
        if duplicates:
            raise DuplicateEntityError(spec.label, ", ".join(dict.fromkeys(duplicates)))
        self.client.execute_batch([self._insert_statement(spec.table, values) for values in prepared])
        LOGGER.info(
            "Bulk created %s %s.",
            len(prepared),
            spec.entity_type,
            extra={"event": "master_bulk_created", "entity_type": spec.entity_type, "count": len(prepared)},
        )
        ids = {values["id"] for values in prepared}
        return [record for record in self.list_master(spec.entity_type) if record["id"] in ids]

    def delete_all_master(self, entity_type: str) -> int:
        spec = get_master_spec(entity_type)
        count = len(self.client.query(f"SELECT id FROM {self._table(spec.table)}").index)
        self.client.execute(f"DELETE FROM {self._table(spec.table)}")
        LOGGER.warning(
            "Deleted all %s. count=%s",
            spec.entity_type,
            count,
            extra={"event": "master_deleted_all", "entity_type": spec.entity_type, "count": count},
        )
        return count
