from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from tour_ops_app.web.core.runtime import get_repo, require_runtime_schema

router = APIRouter(prefix="/api/tour-diaries", dependencies=[Depends(require_runtime_schema)])


@router.get("")
def diaries_list(tour_id: str = ""):
    rows = get_repo().list_tour_diaries(tour_id=tour_id)
    return JSONResponse({"ok": True, "items": rows, "total": len(rows)})


@router.post("")
def diaries_create(payload: dict[str, Any] = Body(...)):
    return JSONResponse({"ok": True, "item": get_repo().create_tour_diary(payload)}, status_code=201)


@router.get("/{diary_id}")
def diaries_get(diary_id: str):
    return JSONResponse({"ok": True, "item": get_repo().get_tour_diary(diary_id)})


@router.patch("/{diary_id}")
def diaries_update(diary_id: str, patch: dict[str, Any] = Body(...)):
    return JSONResponse({"ok": True, "item": get_repo().update_tour_diary(diary_id, patch)})


@router.delete("/{diary_id}")
def diaries_delete(diary_id: str):
    get_repo().delete_tour_diary(diary_id)
    return JSONResponse({"ok": True, "deleted": diary_id})
