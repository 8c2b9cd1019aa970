from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.infrastructure.db import clear_request_perf_context, start_request_perf_context  # noqa: E402
from tour_ops_app.infrastructure.logging import JsonLineFormatter, RequestContextFilter  # noqa: E402


def _record(**extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "tour_ops_app.test", "levelname": "INFO", "msg": "Imported %s rows", "args": (3,)})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_stamps_dash_outside_a_request() -> None:
    record = _record()

    assert RequestContextFilter().filter(record) is True
    assert record.request_id == "-"
    assert record.request_path == "-"


def test_filter_copies_active_request_context() -> None:
    token = start_request_perf_context(request_id="req-42", method="POST", path="/api/tours", slow_query_ms=500)
    try:
        record = _record()
        RequestContextFilter().filter(record)
    finally:
        clear_request_perf_context(token)

    assert record.request_id == "req-42"
    assert record.request_path == "/api/tours"


def test_filter_keeps_explicit_request_id() -> None:
    record = _record(request_id="from-extra")

    RequestContextFilter().filter(record)

    assert record.request_id == "from-extra"


def test_json_formatter_emits_extras_and_unicode() -> None:
    record = _record(event="import_confirmed", created_count=2, guide="Cao Hữu Tu")
    RequestContextFilter().filter(record)

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "Imported 3 rows"
    assert payload["logger"] == "tour_ops_app.test"
    assert payload["event"] == "import_confirmed"
    assert payload["created_count"] == 2
    assert payload["request_id"] == "-"
    assert "Hữu" in JsonLineFormatter().format(record)
    assert "msg" not in payload
