"""Data and log directory resolution using platformdirs.

In dev mode (running from a checkout), paths resolve relative to the
project root. When installed, paths use platform-appropriate directories:
  macOS: ~/Library/Application Support/tgclaude/
  Linux: ~/.local/share/tgclaude/
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "tgclaude"

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def _is_checkout() -> bool:
    """True when running from a source tree (pyproject.toml beside src/)."""
    if os.environ.get("TGCLAUDE_USE_PLATFORM_DIRS", "").strip().lower() in {"1", "true"}:
        return False
    return (_PROJECT_ROOT / "pyproject.toml").exists()


def get_data_dir() -> Path:
    """Return the directory for persistent data (DB, task inbox)."""
    if _is_checkout():
        return _PROJECT_ROOT / "data"
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_log_dir() -> Path:
    """Return the directory for application logs."""
    if _is_checkout():
        return _PROJECT_ROOT / "logs"
    return Path(platformdirs.user_log_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "sessions.db"


def get_default_task_inbox() -> Path:
    """Return the default directory for submitted task briefs."""
    return get_data_dir() / "tasks"


def ensure_dirs_exist() -> None:
    """Create all required directories if they don't exist."""
    for d in [get_data_dir(), get_log_dir()]:
        d.mkdir(parents=True, exist_ok=True)
