from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from tour_ops_app.core.util import as_optional_int, clean_text
from tour_ops_app.imports.entity_cache import ENTITY_KIND_TYPES, EntityCacheLoader
from tour_ops_app.imports.resolver import parse_import_text, sample_import_payload
from tour_ops_app.imports.review import LINE_ITEM_CATALOGS, ImportReviewSession
from tour_ops_app.imports.store import discard_review_session, load_review_session, save_review_session
from tour_ops_app.web.core.runtime import get_repo, require_runtime_schema
from tour_ops_app.web.routers.uploads import read_upload_bytes

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/imports/tours")
SCHEMA_READY = [Depends(require_runtime_schema)]


def _session_payload(token: str, session: ImportReviewSession, *, search: str = "") -> dict[str, Any]:
    return {"ok": True, "token": token, **session.to_dict(search=search)}


@router.get("/sample")
def imports_sample():
    return JSONResponse({"ok": True, "items": sample_import_payload()})


@router.post("/preview", dependencies=SCHEMA_READY)
async def imports_preview(request: Request):
    raw_bytes, file_name = await read_upload_bytes(request)
    payload = parse_import_text(raw_bytes)

    def _build() -> ImportReviewSession:
        return ImportReviewSession.from_payload(payload, EntityCacheLoader.for_repo(get_repo()))

    session = await run_in_threadpool(_build)
    token = save_review_session(session)
    LOGGER.info(
        "Import preview ready. token=%s rows=%s file=%s",
        token,
        len(session.items),
        file_name or "-",
        extra={"event": "import_preview", "rows": len(session.items), "file_name": file_name},
    )
    return JSONResponse(_session_payload(token, session), status_code=201)


@router.get("/{token}", dependencies=SCHEMA_READY)
def imports_review(token: str, search: str = ""):
    session = load_review_session(token)
    with session.lock:
        return JSONResponse(_session_payload(token, session, search=search))


@router.delete("/{token}", dependencies=SCHEMA_READY)
def imports_discard(token: str):
    load_review_session(token)
    discard_review_session(token)
    return JSONResponse({"ok": True, "discarded": token})


@router.patch("/{token}/rows/{index}", dependencies=SCHEMA_READY)
def imports_update_row(token: str, index: int, patch: dict[str, Any] = Body(...)):
    session = load_review_session(token)
    with session.lock:
        item = session.update_row(index, patch)
        return JSONResponse({"ok": True, "row": item.to_dict(index), "can_confirm": session.can_confirm()})


@router.delete("/{token}/rows/{index}", dependencies=SCHEMA_READY)
def imports_remove_row(token: str, index: int):
    session = load_review_session(token)
    with session.lock:
        session.remove_row(index)
        return JSONResponse(_session_payload(token, session))


@router.post("/{token}/rows/{index}/refs/{kind}", dependencies=SCHEMA_READY)
def imports_set_reference(token: str, index: int, kind: str, payload: dict[str, Any] = Body(...)):
    entity_type = ENTITY_KIND_TYPES.get(clean_text(kind).lower())
    if entity_type is None:
        raise ValueError(f"Unknown reference kind: {kind}")
    entity = get_repo().get_master(entity_type, clean_text(payload.get("id")))
    session = load_review_session(token)
    with session.lock:
        item = session.set_reference(index, kind, entity)
        return JSONResponse({"ok": True, "row": item.to_dict(index), "can_confirm": session.can_confirm()})


@router.post("/{token}/entities/{kind}", dependencies=SCHEMA_READY)
def imports_create_entity(token: str, kind: str, payload: dict[str, Any] = Body(...)):
    session = load_review_session(token)
    values = dict(payload)
    row_index = as_optional_int(values.pop("row_index", None))
    with session.lock:
        entity = session.create_entity_inline(get_repo(), kind, values, row_index=row_index)
        return JSONResponse({"ok": True, "entity": entity, **session.to_dict()}, status_code=201)


@router.post("/{token}/match-items", dependencies=SCHEMA_READY)
def imports_match_items(token: str):
    repo = get_repo()
    catalogs = {
        entity_type: repo.list_master(entity_type, status="active")
        for entity_type in set(LINE_ITEM_CATALOGS.values())
    }
    session = load_review_session(token)
    with session.lock:
        matched = session.match_line_items(catalogs)
        return JSONResponse({"ok": True, "matched": matched, **session.to_dict()})


@router.post("/{token}/confirm", dependencies=SCHEMA_READY)
def imports_confirm(token: str):
    session = load_review_session(token)
    with session.lock:
        result = session.confirm(get_repo())
        payload = {"ok": not result.failed, **result.to_dict()}
        if result.failed:
            payload["remaining"] = session.to_dict()
    if not result.failed:
        discard_review_session(token)
    return JSONResponse(payload)
