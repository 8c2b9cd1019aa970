from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from tour_ops_app.domain.totals import compute_tour_totals
from tour_ops_app.repository_tours import TourQuery
from tour_ops_app.web.core.runtime import get_repo, require_runtime_schema

router = APIRouter(prefix="/api/tours", dependencies=[Depends(require_runtime_schema)])


@router.get("")
def tours_list(
    tour_code: str = "",
    client_name: str = "",
    company_id: str = "",
    guide_id: str = "",
    nationality_id: str = "",
    start_date: str = "",
    end_date: str = "",
    sort_by: str = "start_date",
    sort_desc: bool = True,
    limit: int = 100,
    offset: int = 0,
):
    query = TourQuery(
        tour_code=tour_code,
        client_name=client_name,
        company_id=company_id,
        guide_id=guide_id,
        nationality_id=nationality_id,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_desc=sort_desc,
        limit=limit,
        offset=offset,
    )
    rows = get_repo().list_tours(query)
    return JSONResponse({"ok": True, "items": rows, "total": len(rows)})


@router.post("")
def tours_create(payload: dict[str, Any] = Body(...)):
    tour = get_repo().create_tour(payload)
    return JSONResponse({"ok": True, "item": tour.to_dict()}, status_code=201)


@router.get("/{tour_id}")
def tours_get(tour_id: str):
    return JSONResponse({"ok": True, "item": get_repo().get_tour(tour_id).to_dict()})


@router.patch("/{tour_id}")
def tours_update(tour_id: str, patch: dict[str, Any] = Body(...)):
    return JSONResponse({"ok": True, "item": get_repo().update_tour(tour_id, patch).to_dict()})


@router.delete("/{tour_id}")
def tours_delete(tour_id: str):
    get_repo().delete_tour(tour_id)
    return JSONResponse({"ok": True, "deleted": tour_id})


@router.post("/{tour_id}/duplicate")
def tours_duplicate(tour_id: str):
    tour = get_repo().duplicate_tour(tour_id)
    return JSONResponse({"ok": True, "item": tour.to_dict()}, status_code=201)


@router.get("/{tour_id}/totals")
def tours_totals(tour_id: str):
    tour = get_repo().get_tour(tour_id)
    return JSONResponse(
        {
            "ok": True,
            "tour_id": tour.id,
            "totals": compute_tour_totals(tour).to_dict(),
            "summary": tour.to_dict()["summary"],
        }
    )


@router.get("/{tour_id}/items/{collection}")
def tour_items_list(tour_id: str, collection: str):
    items = get_repo().list_line_items(tour_id, collection)
    return JSONResponse({"ok": True, "collection": collection, "items": items})


@router.post("/{tour_id}/items/{collection}")
def tour_items_add(tour_id: str, collection: str, item: dict[str, Any] = Body(...)):
    tour = get_repo().add_line_item(tour_id, collection, item)
    return JSONResponse({"ok": True, "item": tour.to_dict()}, status_code=201)


@router.patch("/{tour_id}/items/{collection}/{index}")
def tour_items_update(tour_id: str, collection: str, index: int, patch: dict[str, Any] = Body(...)):
    tour = get_repo().update_line_item(tour_id, collection, index, patch)
    return JSONResponse({"ok": True, "item": tour.to_dict()})


@router.delete("/{tour_id}/items/{collection}/{index}")
def tour_items_remove(tour_id: str, collection: str, index: int):
    tour = get_repo().remove_line_item(tour_id, collection, index)
    return JSONResponse({"ok": True, "item": tour.to_dict()})
