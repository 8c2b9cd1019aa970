from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from tour_ops_app.exports.excel import export_tour_workbook, read_tour_workbook, workbook_filename
from tour_ops_app.exports.sql_backup import backup_filename, generate_sql_backup
from tour_ops_app.exports.text_export import export_tour_text, text_export_filename
from tour_ops_app.web.core.runtime import get_repo, require_runtime_schema
from tour_ops_app.web.routers.uploads import read_upload_bytes

router = APIRouter(prefix="/api/exports", dependencies=[Depends(require_runtime_schema)])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(file_name: str) -> dict[str, str]:
    return {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}"}


@router.get("/tours/{tour_id}.txt")
def export_tour_txt(tour_id: str):
    tour = get_repo().get_tour(tour_id)
    return Response(
        content=export_tour_text(tour),
        media_type="text/plain; charset=utf-8",
        headers=_attachment(text_export_filename(tour)),
    )


@router.get("/tours/{tour_id}.xlsx")
def export_tour_xlsx(tour_id: str):
    tour = get_repo().get_tour(tour_id)
    return Response(
        content=export_tour_workbook(tour),
        media_type=XLSX_MEDIA_TYPE,
        headers=_attachment(workbook_filename(tour)),
    )


@router.post("/tours/read-xlsx")
async def export_read_xlsx(request: Request):
    raw_bytes, _file_name = await read_upload_bytes(request)
    return JSONResponse({"ok": True, "item": read_tour_workbook(raw_bytes)})


@router.get("/sql-backup")
def export_sql_backup():
    script = generate_sql_backup(get_repo().dump_tables())
    return Response(
        content=script,
        media_type="application/sql; charset=utf-8",
        headers=_attachment(backup_filename()),
    )
