from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

APP_ROOT = Path(__file__).resolve().parents[1] / "app"
if str(APP_ROOT) not in sys.path:
    sys.path.insert(0, str(APP_ROOT))

from tour_ops_app.imports.store import clear_review_sessions  # noqa: E402
from tour_ops_app.web.core.runtime import get_config, get_repo  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_runtime_state():
    get_config.cache_clear()
    get_repo.cache_clear()
    clear_review_sessions()
    yield
    get_repo.cache_clear()
    get_config.cache_clear()
    clear_review_sessions()


@pytest.fixture()
def isolated_local_db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    repo_root = Path(__file__).resolve().parents[1]
    db_path = tmp_path / "tour_ops_local.db"
    init_script = repo_root / "setup" / "local_db" / "init_local_db.py"
    result = subprocess.run(
        [
            sys.executable,
            str(init_script),
            "--db-path",
            str(db_path),
            "--reset",
        ],
        capture_output=True,
        text=True,
        cwd=str(repo_root),
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(
            "Failed to initialize isolated local DB for tests.\n"
            f"stdout:\n{result.stdout}\n"
            f"stderr:\n{result.stderr}"
        )

    monkeypatch.setenv("TOUROPS_ENV", "dev")
    monkeypatch.setenv("TOUROPS_USE_LOCAL_DB", "true")
    monkeypatch.setenv("TOUROPS_LOCAL_DB_PATH", str(db_path))
    monkeypatch.setenv("TOUROPS_LOCAL_DB_AUTO_INIT", "false")
    get_config.cache_clear()
    get_repo.cache_clear()
    return db_path
