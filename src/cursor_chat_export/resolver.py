"""Chat resolution for Cursor workspaces.

A workspace's conversations live in one of two formats:

- the composer format: ``composer.composerData`` in the workspace database
  lists composers, and each conversation body lives in the global database
  under ``composerData:<composerId>``;
- the legacy chat-view format: ``workbench.panel.composerChatViewPane`` holds
  the tabs and their bubbles in a single record.

The composer format wins whenever it yields at least one tab; the legacy
record is only read when it yields none.
"""

import json
import logging
import urllib.parse
from datetime import datetime, timezone
from pathlib import Path

from .config import get_global_db_path, get_query_timeout, get_workspace_storage_path
from .core import ChatBubble, ChatTab, Workspace
from .errors import MalformedSourceError, StoreUnavailableError, WorkspaceNotFoundError
from .records import (
    CHAT_VIEW_PANE_KEY,
    COMPOSER_DATA_KEY,
    CONVERSATION_KEY_PREFIX,
    RawMessage,
    conversation_key,
    parse_composer_index,
    parse_conversation,
    parse_legacy_tabs,
)
from .store import GLOBAL_TABLE, WORKSPACE_TABLE, SqliteStore

logger = logging.getLogger(__name__)

# Fixed label the composer format has always attached to type-2 messages;
# it does not reflect the model that actually answered.
COMPOSER_AI_MODEL_LABEL = "gpt-4"

USER_MESSAGE_TYPE = 1
AI_MESSAGE_TYPE = 2

DB_FILENAME = "state.vscdb"


class ChatResolver:
    """Resolves the chat tabs of Cursor workspaces."""

    def __init__(
        self,
        workspace_path: Path | None = None,
        global_db_path: Path | None = None,
        timeout: float | None = None,
    ):
        self._workspace_path = workspace_path
        self._global_db_path = global_db_path
        self.timeout = timeout if timeout is not None else get_query_timeout()

    def get_base_path(self) -> Path:
        """Return the workspaceStorage directory being read."""
        return Path(self._workspace_path) if self._workspace_path else get_workspace_storage_path()

    def get_global_db_path(self) -> Path:
        return Path(self._global_db_path) if self._global_db_path else get_global_db_path()

    def is_available(self) -> bool:
        return self.get_base_path().is_dir()

    def list_workspaces(self) -> list[Workspace]:
        """Return every workspace directory that holds a state database."""
        base = self.get_base_path()
        if not base.is_dir():
            return []

        workspaces = []
        for ws_dir in sorted(base.iterdir()):
            db_path = ws_dir / DB_FILENAME
            if not ws_dir.is_dir() or not db_path.is_file():
                continue
            workspaces.append(Workspace(
                id=ws_dir.name,
                display_path=self._read_workspace_path(ws_dir) or ws_dir.name,
                last_modified=datetime.fromtimestamp(db_path.stat().st_mtime, tz=timezone.utc),
            ))
        return workspaces

    def resolve(self, workspace_id: str) -> list[ChatTab]:
        """Return all chat tabs of a workspace.

        Raises WorkspaceNotFoundError when the workspace has no chat record
        of either format, and StoreUnavailableError when its database cannot
        be read. Malformed records only reduce the number of tabs returned.
        """
        db_path = self._workspace_db_path(workspace_id)

        with SqliteStore(db_path, WORKSPACE_TABLE, self.timeout) as store:
            composer_raw = store.get(COMPOSER_DATA_KEY)
            chat_raw = store.get(CHAT_VIEW_PANE_KEY)

        if composer_raw is None and chat_raw is None:
            raise WorkspaceNotFoundError(workspace_id)

        tabs: list[ChatTab] = []
        if composer_raw is not None:
            tabs = self._resolve_composer_tabs(composer_raw)
        if not tabs and chat_raw is not None:
            tabs = self._resolve_legacy_tabs(chat_raw)
        return tabs

    # ── Private helpers ──────────────────────────────────────────────

    def _workspace_db_path(self, workspace_id: str) -> Path:
        if (
            not workspace_id
            or workspace_id in (".", "..")
            or "/" in workspace_id
            or "\\" in workspace_id
        ):
            raise WorkspaceNotFoundError(workspace_id)

        db_path = self.get_base_path() / workspace_id / DB_FILENAME
        if not db_path.is_file():
            raise WorkspaceNotFoundError(workspace_id)
        return db_path

    def _read_workspace_path(self, ws_dir: Path) -> str | None:
        """Extract the project path from workspace.json."""
        ws_json = ws_dir / "workspace.json"
        if not ws_json.exists():
            return None
        try:
            data = json.loads(ws_json.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read workspace.json in %s: %s", ws_dir, e)
            return None
        if not isinstance(data, dict):
            return None
        uri = data.get("folder") or data.get("workspace") or ""
        if not isinstance(uri, str):
            return None
        if uri.startswith("file://"):
            return urllib.parse.unquote(uri[7:])
        return uri or None

    def _resolve_composer_tabs(self, raw: str) -> list[ChatTab]:
        try:
            refs = parse_composer_index(raw)
            if not refs:
                return []
            with SqliteStore(self.get_global_db_path(), GLOBAL_TABLE, self.timeout) as global_store:
                rows = global_store.batch_get(conversation_key(ref.composer_id) for ref in refs)
        except (MalformedSourceError, StoreUnavailableError) as e:
            logger.warning("Error processing composer data: %s", e)
            return []

        bodies = {key[len(CONVERSATION_KEY_PREFIX):]: value for key, value in rows}

        tabs = []
        for ref in refs:
            body = bodies.get(ref.composer_id)
            if body is None:
                logger.debug("No conversation stored for composer %s", ref.composer_id)
                continue
            try:
                messages = parse_conversation(body, ref.composer_id)
            except MalformedSourceError as e:
                logger.debug("Dropping composer %s: %s", ref.composer_id, e)
                continue
            if not messages:
                logger.debug("Dropping composer %s: empty conversation", ref.composer_id)
                continue

            tabs.append(ChatTab(
                id=ref.composer_id,
                title=ref.name or _fallback_title(ref.composer_id),
                timestamp=safe_parse_timestamp(ref.last_updated_at or ref.created_at),
                bubbles=[_composer_bubble(msg) for msg in messages],
            ))
        return tabs

    def _resolve_legacy_tabs(self, raw: str) -> list[ChatTab]:
        try:
            legacy_tabs = parse_legacy_tabs(raw)
        except MalformedSourceError as e:
            logger.warning("Error parsing chat data: %s", e)
            return []

        tabs = []
        for tab in legacy_tabs:
            if not tab.bubbles:
                logger.debug("Dropping legacy tab %s: no bubbles", tab.tab_id)
                continue
            tabs.append(ChatTab(
                id=tab.tab_id,
                title=tab.chat_title.split("\n")[0] or _fallback_title(tab.tab_id),
                timestamp=safe_parse_timestamp(tab.last_send_time),
                bubbles=[
                    ChatBubble(type=b.type, text=b.text, model_type=b.model_type, selections=b.selections)
                    for b in tab.bubbles
                ],
            ))
        return tabs


def safe_parse_timestamp(value) -> datetime:
    """Convert a millisecond epoch timestamp to an aware UTC datetime.

    Missing, zero and unparseable values all yield the current time; this
    never raises. ISO 8601 strings are accepted too.
    """
    if not value:
        return datetime.now(timezone.utc)
    try:
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OSError, OverflowError) as e:
        logger.warning("Error parsing timestamp %r: %s", value, e)
        return datetime.now(timezone.utc)


def _composer_bubble(msg: RawMessage) -> ChatBubble:
    return ChatBubble(
        type="user" if msg.type == USER_MESSAGE_TYPE else "ai",
        text=msg.text,
        model_type=COMPOSER_AI_MODEL_LABEL if msg.type == AI_MESSAGE_TYPE else None,
        selections=list(msg.selections),
    )


def _fallback_title(chat_id: str) -> str:
    return f"Chat {chat_id[:8]}"
