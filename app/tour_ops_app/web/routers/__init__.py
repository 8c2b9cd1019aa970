from fastapi import APIRouter

from tour_ops_app.web.routers.diaries import router as diaries_router
from tour_ops_app.web.routers.exports import router as exports_router
from tour_ops_app.web.routers.imports import router as imports_router
from tour_ops_app.web.routers.master import router as master_router
from tour_ops_app.web.routers.system import router as system_router
from tour_ops_app.web.routers.tours import router as tours_router


router = APIRouter()
router.include_router(system_router)
router.include_router(master_router)
router.include_router(tours_router)
router.include_router(diaries_router)
router.include_router(imports_router)
router.include_router(exports_router)
