from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request

from tour_ops_app import __version__
from tour_ops_app.core.env import (
    TOUROPS_PERF_LOG_ENABLED,
    TOUROPS_PERF_RESPONSE_HEADER,
    TOUROPS_SECURITY_HEADERS_ENABLED,
    TOUROPS_SLOW_QUERY_MS,
    get_env_bool,
    get_env_float,
)
from tour_ops_app.infrastructure.db import (
    clear_request_perf_context,
    get_request_perf_context,
    start_request_perf_context,
)
from tour_ops_app.infrastructure.local_db_bootstrap import ensure_local_db_ready
from tour_ops_app.infrastructure.logging import setup_app_logging
from tour_ops_app.web.core.runtime import get_config, get_repo
from tour_ops_app.web.http.errors import api_error_response, normalize_exception
from tour_ops_app.web.http.exception_handlers import register_exception_handlers
from tour_ops_app.web.routers import router as api_router

LOGGER = logging.getLogger(__name__)
PERF_LOGGER = logging.getLogger("tour_ops_app.perf")


def _route_path_label(request: Request) -> str:
    route = request.scope.get("route")
    route_path = str(getattr(route, "path", "") or "").strip()
    if route_path:
        return route_path
    return str(request.url.path or "/")


def create_app() -> FastAPI:
    setup_app_logging()
    config = get_config()
    security_headers_enabled = get_env_bool(TOUROPS_SECURITY_HEADERS_ENABLED, default=True)
    perf_enabled = get_env_bool(TOUROPS_PERF_LOG_ENABLED, default=False)
    perf_header_enabled = get_env_bool(TOUROPS_PERF_RESPONSE_HEADER, default=True)
    slow_query_ms = max(1.0, get_env_float(TOUROPS_SLOW_QUERY_MS, default=750.0, min_value=1.0))

    @asynccontextmanager
    async def _app_lifespan(_app: FastAPI):
        ensure_local_db_ready(get_config())
        LOGGER.info(
            "Tour Ops started. env=%s backend=%s",
            config.env,
            "local" if config.use_local_db else "databricks",
            extra={"event": "app_started", "env": config.env, "use_local_db": config.use_local_db},
        )
        try:
            yield
        finally:
            get_repo.cache_clear()

    app = FastAPI(title="Tour Ops", version=__version__, lifespan=_app_lifespan)

    if security_headers_enabled:

        @app.middleware("http")
        async def _security_headers_middleware(request: Request, call_next):
            response = await call_next(request)
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("X-Frame-Options", "DENY")
            response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
            if not config.is_dev_env:
                response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
            return response

    @app.middleware("http")
    async def _request_perf_middleware(request: Request, call_next):
        request_id = str(request.headers.get("x-request-id", "")).strip()[:64] or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = start_request_perf_context(
            request_id=request_id,
            method=request.method,
            path=str(request.url.path),
            slow_query_ms=slow_query_ms,
        )
        started = time.perf_counter()
        response = None
        status_code = 500
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                spec = normalize_exception(exc)
                LOGGER.exception(
                    "Unhandled API request error. path=%s method=%s",
                    request.url.path,
                    request.method,
                    extra={
                        "event": "unhandled_api_error",
                        "request_id": request_id,
                        "method": request.method,
                        "path": str(request.url.path),
                    },
                )
                response = api_error_response(request, spec)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            ctx = get_request_perf_context() or {}
            db_calls = int(ctx.get("db_calls", 0))
            db_total_ms = float(ctx.get("db_total_ms", 0.0))
            db_cache_hits = int(ctx.get("db_cache_hits", 0))
            db_errors = int(ctx.get("db_errors", 0))
            route_path = _route_path_label(request)

            if perf_enabled:
                PERF_LOGGER.info(
                    (
                        "request_perf id=%s method=%s path=%s status=%s total_ms=%.2f "
                        "db_calls=%s db_ms=%.2f db_cache_hits=%s db_errors=%s"
                    ),
                    request_id,
                    request.method,
                    route_path,
                    status_code,
                    elapsed_ms,
                    db_calls,
                    db_total_ms,
                    db_cache_hits,
                    db_errors,
                    extra={
                        "event": "request_perf",
                        "request_id": request_id,
                        "method": request.method,
                        "path": route_path,
                        "status_code": status_code,
                        "total_ms": round(float(elapsed_ms), 2),
                        "db_calls": db_calls,
                        "db_ms": round(float(db_total_ms), 2),
                        "db_cache_hits": db_cache_hits,
                        "db_errors": db_errors,
                    },
                )

            if response is not None:
                response.headers["X-Request-ID"] = request_id
                if perf_enabled and perf_header_enabled:
                    response.headers["X-TourOps-Perf"] = (
                        f"total_ms={elapsed_ms:.2f};db_ms={db_total_ms:.2f};db_calls={db_calls};cache_hits={db_cache_hits}"
                    )

            clear_request_perf_context(token)

    register_exception_handlers(app)
    app.include_router(api_router)
    return app
