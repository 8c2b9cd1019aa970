from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from tour_ops_app.core.env import (
    TOUROPS_CATALOG,
    TOUROPS_ENV,
    TOUROPS_FQ_SCHEMA,
    TOUROPS_LOCAL_DB_PATH,
    TOUROPS_SCHEMA,
    TOUROPS_USE_LOCAL_DB,
    get_env,
)
from tour_ops_app.core.util import as_bool

DEV_ENV_NAMES = {"dev", "development", "local"}
DEFAULT_LOCAL_DB_PATH = "setup/local_db/tour_ops_local.db"
DEFAULT_SCHEMA_BOOTSTRAP_SQL = "setup/databricks/001_create_tour_ops_schema.sql"


def _clean_host(raw_host: str) -> str:
    value = str(raw_host or "").strip()
    if not value:
        return ""
    return value.replace("https://", "").replace("http://", "").rstrip("/")


def _resolve_http_path() -> str:
    for key in ("DATABRICKS_HTTP_PATH", "DATABRICKS_SQL_HTTP_PATH"):
        value = get_env(key)
        if value:
            return value
    for key in ("DATABRICKS_WAREHOUSE_ID", "DATABRICKS_SQL_WAREHOUSE_ID"):
        warehouse_id = get_env(key)
        if warehouse_id:
            return f"/sql/1.0/warehouses/{warehouse_id}"
    return ""


def _repo_root() -> Path:
    # app/tour_ops_app/core/config.py -> repo root is three levels up from core/
    return Path(__file__).resolve().parents[3]


def _resolve_repo_relative_path(raw_path: str) -> str:
    value = str(raw_path or "").strip()
    if not value:
        return value
    path = Path(value)
    if path.is_absolute():
        return str(path)
    return str((_repo_root() / path).resolve())


def _resolve_catalog_schema(env_name: str) -> tuple[str, str]:
    fq_schema = get_env(TOUROPS_FQ_SCHEMA)
    if fq_schema:
        parts = [item.strip() for item in fq_schema.split(".", 1)]
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise RuntimeError(f"{TOUROPS_FQ_SCHEMA} must be in '<catalog>.<schema>' format.")
        return parts[0], parts[1]

    default_catalog = "tour_ops_dev" if env_name in DEV_ENV_NAMES else ""
    default_schema = "tour_ops" if env_name in DEV_ENV_NAMES else ""
    catalog = get_env(TOUROPS_CATALOG, default_catalog)
    schema = get_env(TOUROPS_SCHEMA, default_schema)
    if not catalog or not schema:
        raise RuntimeError(
            f"{TOUROPS_CATALOG} and {TOUROPS_SCHEMA} are required outside local/dev mode "
            f"(or set {TOUROPS_FQ_SCHEMA})."
        )
    return catalog, schema


@dataclass(frozen=True)
class AppConfig:
    databricks_server_hostname: str
    databricks_http_path: str
    databricks_token: str
    databricks_client_id: str = ""
    databricks_client_secret: str = ""
    env: str = "dev"
    catalog: str = "tour_ops_dev"
    schema: str = "tour_ops"
    use_local_db: bool = False
    local_db_path: str = DEFAULT_LOCAL_DB_PATH
    schema_bootstrap_sql_path: str = DEFAULT_SCHEMA_BOOTSTRAP_SQL

    @property
    def fq_schema(self) -> str:
        return f"{self.catalog}.{self.schema}"

    @property
    def is_dev_env(self) -> bool:
        return self.env in DEV_ENV_NAMES

    @staticmethod
    def from_env() -> "AppConfig":
        env_name = get_env(TOUROPS_ENV, "dev").lower() or "dev"
        catalog, schema = _resolve_catalog_schema(env_name)
        requested_local_db = as_bool(os.getenv(TOUROPS_USE_LOCAL_DB), default=env_name in DEV_ENV_NAMES)
        if requested_local_db and env_name not in DEV_ENV_NAMES:
            raise RuntimeError(
                f"{TOUROPS_USE_LOCAL_DB}=true is allowed only for dev/local environments. "
                f"Set {TOUROPS_ENV}=dev (or local), or disable {TOUROPS_USE_LOCAL_DB}."
            )
        raw_host = get_env("DATABRICKS_SERVER_HOSTNAME") or get_env("DATABRICKS_HOST")
        return AppConfig(
            databricks_server_hostname=_clean_host(raw_host),
            databricks_http_path=_resolve_http_path(),
            databricks_token=get_env("DATABRICKS_TOKEN"),
            databricks_client_id=get_env("DATABRICKS_CLIENT_ID"),
            databricks_client_secret=get_env("DATABRICKS_CLIENT_SECRET"),
            env=env_name,
            catalog=catalog,
            schema=schema,
            use_local_db=requested_local_db,
            local_db_path=_resolve_repo_relative_path(get_env(TOUROPS_LOCAL_DB_PATH, DEFAULT_LOCAL_DB_PATH)),
            schema_bootstrap_sql_path=get_env("TOUROPS_SCHEMA_BOOTSTRAP_SQL", DEFAULT_SCHEMA_BOOTSTRAP_SQL),
        )
