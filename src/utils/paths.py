"""File path resolution using platformdirs.

The data directory holds the SQLite database by default:
  macOS: ~/Library/Application Support/orderrelay/
  Linux: ~/.local/share/orderrelay/
Set ORDERRELAY_DATA_DIR to pin it elsewhere (containers, tests).
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "orderrelay"


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB)."""
    override = os.environ.get("ORDERRELAY_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "orderrelay.db"


def ensure_dirs_exist() -> None:
    """Create the data directory if it doesn't exist."""
    get_data_dir().mkdir(parents=True, exist_ok=True)
