"""Application logging.

Every record emitted under ``tour_ops_app`` is stamped with the request id and
route of the HTTP request it belongs to (``-`` outside a request), so import
review and SQL perf lines can be joined back to the API call that caused them.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from tour_ops_app.core.env import (
    TOUROPS_LOG_CAPTURE_ROOT,
    TOUROPS_LOG_JSON,
    TOUROPS_LOG_LEVEL,
    get_env,
    get_env_bool,
)
from tour_ops_app.infrastructure.db import get_request_perf_context

APP_LOGGER_NAME = "tour_ops_app"
TEXT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

_LOGGING_CONFIGURED = False
_STANDARD_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class RequestContextFilter(logging.Filter):
    """Copies ``request_id`` and ``request_path`` from the active request onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_request_perf_context() or {}
        if not getattr(record, "request_id", None):
            record.request_id = str(ctx.get("request_id") or "-")
        if not getattr(record, "request_path", None):
            record.request_path = str(ctx.get("path") or "-")
        return True


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_RECORD_FIELDS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def build_log_handler(*, level: int, use_json: bool) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonLineFormatter() if use_json else logging.Formatter(TEXT_LOG_FORMAT))
    return handler


def setup_app_logging(*, force: bool = False) -> None:
    global _LOGGING_CONFIGURED  # pylint: disable=global-statement
    if _LOGGING_CONFIGURED and not force:
        return

    level_name = get_env(TOUROPS_LOG_LEVEL, "INFO").upper() or "INFO"
    level = getattr(logging, level_name, logging.INFO)
    use_json = get_env_bool(TOUROPS_LOG_JSON, default=False)
    handler = build_log_handler(level=level, use_json=use_json)

    targets = [logging.getLogger(APP_LOGGER_NAME)]
    if get_env_bool(TOUROPS_LOG_CAPTURE_ROOT, default=False):
        targets.append(logging.getLogger())
    for target in targets:
        target.handlers.clear()
        target.addHandler(handler)
        target.setLevel(level)
    targets[0].propagate = False

    logging.getLogger(__name__).info(
        "Logging ready. level=%s json=%s capture_root=%s",
        level_name,
        str(use_json).lower(),
        str(len(targets) > 1).lower(),
        extra={"event": "logging_configured"},
    )
    _LOGGING_CONFIGURED = True
