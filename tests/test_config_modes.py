from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.core.config import AppConfig  # noqa: E402


def _clear_mode_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "TOUROPS_ENV",
        "TOUROPS_USE_LOCAL_DB",
        "TOUROPS_CATALOG",
        "TOUROPS_SCHEMA",
        "TOUROPS_FQ_SCHEMA",
        "TOUROPS_LOCAL_DB_PATH",
        "DATABRICKS_SERVER_HOSTNAME",
        "DATABRICKS_HOST",
        "DATABRICKS_HTTP_PATH",
        "DATABRICKS_WAREHOUSE_ID",
    ):
        monkeypatch.delenv(key, raising=False)


def test_dev_defaults_to_local_db(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("TOUROPS_ENV", "dev")

    config = AppConfig.from_env()

    assert config.env == "dev"
    assert config.is_dev_env is True
    assert config.use_local_db is True
    assert config.fq_schema == "tour_ops_dev.tour_ops"
    assert config.local_db_path.endswith("tour_ops_local.db")


def test_prod_defaults_to_databricks_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("TOUROPS_ENV", "prod")
    monkeypatch.setenv("TOUROPS_FQ_SCHEMA", "ops_prod.tours")

    config = AppConfig.from_env()

    assert config.env == "prod"
    assert config.is_dev_env is False
    assert config.use_local_db is False
    assert (config.catalog, config.schema) == ("ops_prod", "tours")


def test_prod_rejects_local_db_override(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("TOUROPS_ENV", "prod")
    monkeypatch.setenv("TOUROPS_FQ_SCHEMA", "ops_prod.tours")
    monkeypatch.setenv("TOUROPS_USE_LOCAL_DB", "true")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_prod_requires_catalog_and_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("TOUROPS_ENV", "prod")

    with pytest.raises(RuntimeError, match="TOUROPS_CATALOG"):
        AppConfig.from_env()


def test_malformed_fq_schema_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("TOUROPS_FQ_SCHEMA", "no_dot")

    with pytest.raises(RuntimeError):
        AppConfig.from_env()


def test_databricks_host_is_cleaned(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_mode_env(monkeypatch)
    monkeypatch.setenv("DATABRICKS_HOST", "https://adb-123.azuredatabricks.net/")
    monkeypatch.setenv("DATABRICKS_WAREHOUSE_ID", "abc123")

    config = AppConfig.from_env()

    assert config.databricks_server_hostname == "adb-123.azuredatabricks.net"
    assert config.databricks_http_path == "/sql/1.0/warehouses/abc123"
