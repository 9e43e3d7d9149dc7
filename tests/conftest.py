"""Shared test fixtures for cursor-chat-export."""

import json
import sqlite3
from datetime import datetime, timezone

import pytest

from cursor_chat_export.resolver import ChatResolver

CREATED_MS = int(datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)
UPDATED_MS = int(datetime(2025, 1, 15, 11, 0, 0, tzinfo=timezone.utc).timestamp() * 1000)


def write_kv_db(db_path, table, items):
    """Create a state.vscdb-style key/value database."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.execute(f"CREATE TABLE IF NOT EXISTS {table} (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
    for key, value in items.items():
        if not isinstance(value, (str, bytes)):
            value = json.dumps(value)
        conn.execute(f"INSERT INTO {table} VALUES (?, ?)", (key, value))
    conn.commit()
    conn.close()
    return db_path


@pytest.fixture
def cursor_user_dir(tmp_path):
    """A synthetic Cursor ``User`` directory."""
    user_dir = tmp_path / "User"
    (user_dir / "workspaceStorage").mkdir(parents=True)
    return user_dir


@pytest.fixture
def global_db_path(cursor_user_dir):
    return cursor_user_dir / "globalStorage" / "state.vscdb"


@pytest.fixture
def make_workspace(cursor_user_dir):
    """Factory creating a workspace directory with an ItemTable database."""

    def _make(workspace_id, items, folder=None):
        ws_dir = cursor_user_dir / "workspaceStorage" / workspace_id
        ws_dir.mkdir(parents=True, exist_ok=True)
        if folder:
            (ws_dir / "workspace.json").write_text(json.dumps({"folder": folder}), encoding="utf-8")
        write_kv_db(ws_dir / "state.vscdb", "ItemTable", items)
        return ws_dir

    return _make


@pytest.fixture
def make_global(global_db_path):
    """Factory filling the global cursorDiskKV database."""

    def _make(items):
        return write_kv_db(global_db_path, "cursorDiskKV", items)

    return _make


@pytest.fixture
def resolver(cursor_user_dir, global_db_path):
    return ChatResolver(
        workspace_path=cursor_user_dir / "workspaceStorage",
        global_db_path=global_db_path,
        timeout=5.0,
    )


@pytest.fixture
def populated_storage(make_workspace, make_global, cursor_user_dir):
    """Three workspaces: composer format, legacy format, and no chat data."""
    make_workspace(
        "ws-composer",
        {
            "composer.composerData": {
                "allComposers": [
                    {
                        "composerId": "comp-uuid-001",
                        "name": "Fix auth bug",
                        "createdAt": CREATED_MS,
                        "lastUpdatedAt": UPDATED_MS,
                    },
                    {"composerId": "comp-uuid-002", "createdAt": CREATED_MS},
                ],
            },
        },
        folder="file:///Users/testuser/dev/my%20project",
    )
    make_global({
        "composerData:comp-uuid-001": {
            "conversation": [
                {
                    "type": 1,
                    "text": "Fix the login bug",
                    "context": {"selections": [{"text": "const token = read();"}]},
                },
                {"type": 2, "text": "Updated token validation."},
            ],
        },
        "composerData:comp-uuid-002": {
            "conversation": [
                {"type": 1, "richText": "Add dark mode"},
                {"type": 2, "text": ""},
            ],
        },
    })
    make_workspace(
        "ws-legacy",
        {
            "workbench.panel.composerChatViewPane": {
                "workbench.panel.aichat.view": {
                    "tabs": [
                        {
                            "tabId": "legacy-tab-001",
                            "chatTitle": "What is Python?\nfollow-up",
                            "lastSendTime": UPDATED_MS,
                            "bubbles": [
                                {"type": "user", "text": "What is Python?"},
                                {"type": "ai", "text": "A programming language.", "modelType": "gpt-3.5"},
                            ],
                        }
                    ]
                }
            },
        },
        folder="file:///Users/testuser/dev/legacy",
    )
    make_workspace("ws-empty", {"some.other.key": {"x": 1}})
    return cursor_user_dir
