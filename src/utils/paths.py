"""File path resolution using platformdirs.

In a source checkout, paths resolve relative to the project root. When
EPESI_USE_USER_DIRS is set (installed deployments), paths use
platform-appropriate directories:
  macOS: ~/Library/Application Support/epesi/
  Linux: ~/.local/share/epesi/
  Windows: %LOCALAPPDATA%/epesi/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "epesi"


def _use_user_dirs() -> bool:
    return os.environ.get("EPESI_USE_USER_DIRS", "").strip().lower() in (
        "1",
        "true",
        "yes",
    )


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, config).

    In a checkout: project root.
    Otherwise: platform user data dir.
    """
    if _use_user_dirs():
        return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))
    return Path(__file__).resolve().parent.parent.parent


def get_config_dir() -> Path:
    """Return the directory searched for epesi.yaml."""
    if _use_user_dirs():
        return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False))
    return Path.home() / ".epesi"


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "epesi.db"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_config_dir()]:
        d.mkdir(parents=True, exist_ok=True)
