from __future__ import annotations

import logging
from pathlib import Path
import subprocess
import sys

from tour_ops_app.core.config import AppConfig
from tour_ops_app.core.env import (
    TOUROPS_LOCAL_DB_AUTO_INIT,
    TOUROPS_LOCAL_DB_RESET_ON_START,
    TOUROPS_LOCAL_DB_SEED,
    get_env_bool,
)

LOGGER = logging.getLogger(__name__)


def local_db_init_script() -> Path:
    repo_root = Path(__file__).resolve().parents[3]
    return (repo_root / "setup" / "local_db" / "init_local_db.py").resolve()


def build_local_db_init_command(config: AppConfig, *, reset: bool, seed: bool) -> list[str]:
    cmd = [
        sys.executable,
        str(local_db_init_script()),
        "--db-path",
        str(Path(config.local_db_path).resolve()),
    ]
    if reset:
        cmd.append("--reset")
    if not seed:
        cmd.append("--skip-seed")
    return cmd


def ensure_local_db_ready(config: AppConfig) -> bool:
    """Create the local SQLite cache when missing. Returns True when the init script ran."""
    if not config.use_local_db:
        return False
    if not get_env_bool(TOUROPS_LOCAL_DB_AUTO_INIT, default=True):
        return False

    db_path = Path(config.local_db_path).resolve()
    reset_on_start = get_env_bool(TOUROPS_LOCAL_DB_RESET_ON_START, default=False)
    if db_path.exists() and not reset_on_start:
        return False

    init_script = local_db_init_script()
    if not init_script.exists():
        raise RuntimeError(f"Local DB init script not found: {init_script}")

    cmd = build_local_db_init_command(
        config,
        reset=reset_on_start,
        seed=get_env_bool(TOUROPS_LOCAL_DB_SEED, default=True),
    )
    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        cwd=str(init_script.parents[2]),
        check=False,
    )
    if result.returncode != 0:
        raise RuntimeError(
            "Local DB bootstrap failed.\n"
            f"Command: {' '.join(cmd)}\n"
            f"stdout:\n{result.stdout}\n"
            f"stderr:\n{result.stderr}"
        )
    LOGGER.info(
        "Local DB initialized. path=%s reset=%s",
        db_path,
        str(reset_on_start).lower(),
        extra={"event": "local_db_initialized", "db_path": str(db_path)},
    )
    return True
