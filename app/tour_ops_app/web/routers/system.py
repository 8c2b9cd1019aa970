from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from tour_ops_app import __version__
from tour_ops_app.core.errors import SchemaBootstrapRequiredError
from tour_ops_app.web.core.runtime import get_config, get_repo

router = APIRouter(prefix="/api")


def _connection_context(config) -> dict[str, bool]:
    return {
        "has_server_hostname": bool(config.databricks_server_hostname),
        "has_http_path": bool(config.databricks_http_path),
        "has_pat_token": bool(str(config.databricks_token or "").strip()),
        "has_client_credentials": bool(
            str(config.databricks_client_id or "").strip()
            and str(config.databricks_client_secret or "").strip()
        ),
    }


@router.get("/health")
def api_health():
    repo = get_repo()
    config = get_config()
    payload = {
        "ok": True,
        "version": __version__,
        "mode": "local" if config.use_local_db else "databricks",
        "schema": config.fq_schema,
        "connection_context": _connection_context(config),
        "query_cache": repo.client.cache_stats(),
    }
    try:
        repo.ensure_runtime_tables()
        return JSONResponse(payload, status_code=200)
    except SchemaBootstrapRequiredError as exc:
        payload["ok"] = False
        payload["error"] = str(exc)
        return JSONResponse(payload, status_code=503)
    except Exception as exc:
        payload["ok"] = False
        payload["error"] = f"Connection check failed: {exc}"
        return JSONResponse(payload, status_code=503)
