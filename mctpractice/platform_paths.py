"""Platform-specific paths for user data (logs, result journals, scripts).

We intentionally avoid extra dependencies (e.g. platformdirs) and rely on
standard environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "MCTPractice"
DATA_DIR_ENV = "MCTPRACTICE_DATA_DIR"
RESULTS_FILENAME = "results.jsonl"


def is_windows() -> bool:
    return os.name == "nt"


def get_user_data_dir(app_name: str = APP_NAME) -> Path:
    """Return a persistent per-user data directory.

    ``MCTPRACTICE_DATA_DIR`` wins when set.
    Windows: %APPDATA%\\MCTPractice, elsewhere ~/.mctpractice
    """
    override = os.getenv(DATA_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if is_windows():
        base = os.getenv("APPDATA")
        if base:
            return Path(base) / app_name
        return Path.home() / "AppData" / "Roaming" / app_name

    return Path.home() / f".{app_name.lower()}"


def get_results_path(app_name: str = APP_NAME) -> Path:
    """Default location of the local session result journal."""
    return get_user_data_dir(app_name) / RESULTS_FILENAME


def ensure_dir(path: Path) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
