from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from tour_ops_app.domain.master import get_master_spec
from tour_ops_app.web.core.runtime import get_repo, require_runtime_schema

router = APIRouter(prefix="/api/master", dependencies=[Depends(require_runtime_schema)])


@router.get("/{entity_type}")
def master_list(entity_type: str, search: str = "", status: str = ""):
    spec = get_master_spec(entity_type)
    rows = get_repo().list_master(spec.entity_type, search=search, status=status)
    return JSONResponse({"ok": True, "entity_type": spec.entity_type, "items": rows, "total": len(rows)})


@router.post("/{entity_type}")
def master_create(entity_type: str, payload: dict[str, Any] = Body(...)):
    record = get_repo().create_master(entity_type, payload)
    return JSONResponse({"ok": True, "item": record}, status_code=201)


@router.post("/{entity_type}/bulk")
def master_bulk_create(entity_type: str, rows: list[dict[str, Any]] = Body(..., embed=True)):
    records = get_repo().bulk_create_master(entity_type, rows)
    return JSONResponse({"ok": True, "items": records, "created": len(records)}, status_code=201)


@router.delete("/{entity_type}")
def master_delete_all(entity_type: str):
    deleted = get_repo().delete_all_master(entity_type)
    return JSONResponse({"ok": True, "deleted": deleted})


@router.get("/{entity_type}/{entity_id}")
def master_get(entity_type: str, entity_id: str):
    return JSONResponse({"ok": True, "item": get_repo().get_master(entity_type, entity_id)})


@router.patch("/{entity_type}/{entity_id}")
def master_update(entity_type: str, entity_id: str, patch: dict[str, Any] = Body(...)):
    return JSONResponse({"ok": True, "item": get_repo().update_master(entity_type, entity_id, patch)})


@router.delete("/{entity_type}/{entity_id}")
def master_delete(entity_type: str, entity_id: str):
    get_repo().delete_master(entity_type, entity_id)
    return JSONResponse({"ok": True, "deleted": entity_id})


@router.post("/{entity_type}/{entity_id}/toggle-status")
def master_toggle_status(entity_type: str, entity_id: str):
    return JSONResponse({"ok": True, "item": get_repo().toggle_master_status(entity_type, entity_id)})


@router.post("/{entity_type}/{entity_id}/duplicate")
def master_duplicate(entity_type: str, entity_id: str):
    record = get_repo().duplicate_master(entity_type, entity_id)
    return JSONResponse({"ok": True, "item": record}, status_code=201)
