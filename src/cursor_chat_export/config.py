"""Platform-aware path resolution for Cursor data directories."""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 10.0


def get_cursor_user_path() -> Path:
    """Return Cursor's ``User`` directory for the current platform."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Cursor" / "User"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "Cursor" / "User"
    else:  # Linux
        return Path.home() / ".config" / "Cursor" / "User"


def get_workspace_storage_path() -> Path:
    """Return the path to Cursor's workspaceStorage directory."""
    env = os.environ.get("CURSOR_CHAT_WORKSPACE_PATH")
    if env:
        return Path(env)
    return get_cursor_user_path() / "workspaceStorage"


def get_global_db_path() -> Path:
    """Return the path to Cursor's globalStorage state.vscdb."""
    env = os.environ.get("CURSOR_CHAT_GLOBAL_DB")
    if env:
        return Path(env)
    # globalStorage sits alongside workspaceStorage
    return get_workspace_storage_path().parent / "globalStorage" / "state.vscdb"


def get_query_timeout() -> float:
    """Return the per-connection query deadline in seconds."""
    env = os.environ.get("CURSOR_CHAT_QUERY_TIMEOUT")
    if not env:
        return DEFAULT_QUERY_TIMEOUT
    try:
        value = float(env)
    except ValueError:
        logger.warning("Invalid CURSOR_CHAT_QUERY_TIMEOUT %r, using %s", env, DEFAULT_QUERY_TIMEOUT)
        return DEFAULT_QUERY_TIMEOUT
    if value <= 0:
        logger.warning("Non-positive CURSOR_CHAT_QUERY_TIMEOUT %r, using %s", env, DEFAULT_QUERY_TIMEOUT)
        return DEFAULT_QUERY_TIMEOUT
    return value
