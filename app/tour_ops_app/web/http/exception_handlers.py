from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tour_ops_app.core.errors import EntityNotFoundError, SchemaBootstrapRequiredError
from tour_ops_app.infrastructure.db import DataConnectionError, DataExecutionError, DataQueryError
from tour_ops_app.web.http.errors import ApiError, api_error_response, normalize_exception

LOGGER = logging.getLogger(__name__)

HANDLED_EXCEPTIONS = (
    ApiError,
    RequestValidationError,
    StarletteHTTPException,
    SchemaBootstrapRequiredError,
    EntityNotFoundError,
    DataConnectionError,
    DataQueryError,
    DataExecutionError,
    ValueError,
)


def register_exception_handlers(app: FastAPI) -> None:
    async def _api_exception_handler(request: Request, exc: Exception):
        spec = normalize_exception(exc)
        log_fn = LOGGER.warning if spec.status_code < 500 else LOGGER.error
        log_fn(
            "API request failed. code=%s status=%s path=%s method=%s",
            spec.code,
            spec.status_code,
            request.url.path,
            request.method,
            extra={
                "event": "api_error",
                "request_id": str(getattr(request.state, "request_id", "-")),
                "error_code": spec.code,
                "status_code": int(spec.status_code),
                "method": request.method,
                "path": str(request.url.path),
            },
        )
        return api_error_response(request, spec)

    for exc_class in HANDLED_EXCEPTIONS:
        app.add_exception_handler(exc_class, _api_exception_handler)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        spec = normalize_exception(exc)
        LOGGER.exception(
            "Unhandled API request error. path=%s method=%s",
            request.url.path,
            request.method,
            extra={
                "event": "unhandled_api_error",
                "request_id": str(getattr(request.state, "request_id", "-")),
                "method": request.method,
                "path": str(request.url.path),
            },
        )
        return api_error_response(request, spec)
