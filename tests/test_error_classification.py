from __future__ import annotations

import sys
from pathlib import Path

import pytest
from starlette.exceptions import HTTPException as StarletteHTTPException

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.core.errors import (  # noqa: E402
    DuplicateEntityError,
    EntityNotFoundError,
    ImportPayloadError,
    SchemaBootstrapRequiredError,
)
from tour_ops_app.infrastructure.db import (  # noqa: E402
    DataConnectionError,
    DataExecutionError,
    DataQueryError,
)
from tour_ops_app.web.http.errors import (  # noqa: E402
    ERROR_CODE_BAD_REQUEST,
    ERROR_CODE_DB_CONNECTION,
    ERROR_CODE_DB_EXECUTION,
    ERROR_CODE_DB_QUERY,
    ERROR_CODE_DUPLICATE,
    ERROR_CODE_INTERNAL,
    ERROR_CODE_NOT_FOUND,
    ERROR_CODE_SCHEMA_BOOTSTRAP_REQUIRED,
    ApiError,
    build_api_error_payload,
    normalize_exception,
)


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (EntityNotFoundError("tour", "t-1"), 404, ERROR_CODE_NOT_FOUND),
        (DuplicateEntityError("company", "Việt Á"), 409, ERROR_CODE_DUPLICATE),
        (ImportPayloadError("Import payload must contain a 'tours' list."), 400, ERROR_CODE_BAD_REQUEST),
        (SchemaBootstrapRequiredError("missing tables"), 503, ERROR_CODE_SCHEMA_BOOTSTRAP_REQUIRED),
        (DataConnectionError("warehouse down"), 503, ERROR_CODE_DB_CONNECTION),
        (DataQueryError("bad select"), 500, ERROR_CODE_DB_QUERY),
        (DataExecutionError("bad insert"), 500, ERROR_CODE_DB_EXECUTION),
        (ValueError("quantity must be positive"), 400, ERROR_CODE_BAD_REQUEST),
        (StarletteHTTPException(status_code=404, detail="Not Found"), 404, ERROR_CODE_NOT_FOUND),
        (RuntimeError("boom"), 500, ERROR_CODE_INTERNAL),
    ],
)
def test_normalize_exception_maps_status_and_code(exc: Exception, status_code: int, code: str) -> None:
    spec = normalize_exception(exc)

    assert spec.status_code == status_code
    assert spec.code == code


def test_api_error_passes_through_unchanged() -> None:
    spec = normalize_exception(ApiError(status_code=413, code="PAYLOAD_TOO_LARGE", message="too big"))

    assert (spec.status_code, spec.code, spec.message) == (413, "PAYLOAD_TOO_LARGE", "too big")


def test_not_found_message_names_entity() -> None:
    spec = normalize_exception(EntityNotFoundError("tour", "t-404"))

    assert "t-404" in spec.message
    assert spec.details == {"entity_type": "tour", "entity_id": "t-404"}


def test_unexpected_error_hides_internal_message() -> None:
    spec = normalize_exception(KeyError("secret-column"))

    assert "secret-column" not in spec.message
    assert spec.details["type"] == "KeyError"


def test_error_payload_omits_details_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TOUROPS_ERROR_INCLUDE_DETAILS", raising=False)

    payload = build_api_error_payload(
        code=ERROR_CODE_NOT_FOUND,
        message="tour 't-1' was not found.",
        request_id="req-1",
        details={"entity_id": "t-1"},
    )

    assert payload["ok"] is False
    assert payload["request_id"] == "req-1"
    assert payload["error"] == {"code": ERROR_CODE_NOT_FOUND, "message": "tour 't-1' was not found."}
    assert payload["timestamp"]


def test_error_payload_includes_details_when_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOUROPS_ERROR_INCLUDE_DETAILS", "true")

    payload = build_api_error_payload(
        code=ERROR_CODE_NOT_FOUND,
        message="missing",
        request_id="",
        details={"entity_id": "t-1"},
    )

    assert payload["error"]["details"] == {"entity_id": "t-1"}
    assert payload["request_id"] == "-"
