"""Decoding of the raw JSON blobs Cursor keeps in its key-value stores.

Values are decoded once, here, into small typed records. Anything that does
not have the expected shape either raises MalformedSourceError (the record as
a whole is unusable) or is dropped entry by entry with a debug log.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import MalformedSourceError

logger = logging.getLogger(__name__)

COMPOSER_DATA_KEY = "composer.composerData"
CHAT_VIEW_PANE_KEY = "workbench.panel.composerChatViewPane"
CONVERSATION_KEY_PREFIX = "composerData:"
LEGACY_VIEW_KEY = "workbench.panel.aichat.view"


@dataclass
class ComposerRef:
    """An entry of ``allComposers`` in the workspace composer record."""

    composer_id: str
    name: str = ""
    last_updated_at: Any = None
    created_at: Any = None


@dataclass
class RawMessage:
    """One message of a composer conversation body."""

    type: Optional[int]
    text: str = ""
    selections: list[str] = field(default_factory=list)


@dataclass
class LegacyBubble:
    type: str
    text: str = ""
    model_type: Optional[str] = None
    selections: list[str] = field(default_factory=list)


@dataclass
class LegacyTab:
    """A tab of the legacy chat-view record, bubbles stored inline."""

    tab_id: str
    chat_title: str = ""
    last_send_time: Any = None
    bubbles: list[LegacyBubble] = field(default_factory=list)


def conversation_key(composer_id: str) -> str:
    return f"{CONVERSATION_KEY_PREFIX}{composer_id}"


def load_json(raw: str, source: str) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedSourceError(source, str(e)) from e


def parse_composer_index(raw: str) -> list[ComposerRef]:
    """Decode ``composer.composerData`` into its composer references."""
    data = load_json(raw, COMPOSER_DATA_KEY)
    if not isinstance(data, dict):
        raise MalformedSourceError(COMPOSER_DATA_KEY, "expected an object")

    composers = data.get("allComposers")
    if not composers:
        return []
    if not isinstance(composers, list):
        raise MalformedSourceError(COMPOSER_DATA_KEY, "allComposers is not a list")

    refs = []
    for entry in composers:
        composer_id = entry.get("composerId") if isinstance(entry, dict) else None
        if not isinstance(composer_id, str) or not composer_id:
            logger.debug("Dropping composer entry without composerId: %r", entry)
            continue
        name = entry.get("name")
        refs.append(ComposerRef(
            composer_id=composer_id,
            name=name if isinstance(name, str) else "",
            last_updated_at=entry.get("lastUpdatedAt"),
            created_at=entry.get("createdAt"),
        ))
    return refs


def parse_conversation(raw: str, composer_id: str) -> list[RawMessage]:
    """Decode a global ``composerData:<id>`` body into its message list."""
    source = conversation_key(composer_id)
    data = load_json(raw, source)
    if not isinstance(data, dict):
        raise MalformedSourceError(source, "expected an object")

    conversation = data.get("conversation")
    if not isinstance(conversation, list):
        raise MalformedSourceError(source, "conversation is not a list")

    messages = []
    for msg in conversation:
        if not isinstance(msg, dict):
            logger.debug("Dropping non-object message in %s", source)
            continue
        msg_type = msg.get("type")
        if isinstance(msg_type, bool) or not isinstance(msg_type, int):
            msg_type = None
        context = msg.get("context")
        messages.append(RawMessage(
            type=msg_type,
            text=_first_text(msg.get("text"), msg.get("richText")),
            selections=_selections(context.get("selections") if isinstance(context, dict) else None),
        ))
    return messages


def parse_legacy_tabs(raw: str) -> list[LegacyTab]:
    """Decode ``workbench.panel.composerChatViewPane`` into its tabs."""
    data = load_json(raw, CHAT_VIEW_PANE_KEY)
    if not isinstance(data, dict):
        raise MalformedSourceError(CHAT_VIEW_PANE_KEY, "expected an object")

    view = data.get(LEGACY_VIEW_KEY)
    tabs = view.get("tabs") if isinstance(view, dict) else None
    if not tabs:
        return []
    if not isinstance(tabs, list):
        raise MalformedSourceError(CHAT_VIEW_PANE_KEY, "tabs is not a list")

    result = []
    for entry in tabs:
        if not isinstance(entry, dict) or not isinstance(entry.get("bubbles"), list):
            logger.debug("Dropping legacy tab without bubbles: %r", entry)
            continue
        tab_id = entry.get("tabId")
        if not isinstance(tab_id, str) or not tab_id:
            logger.debug("Dropping legacy tab without tabId")
            continue
        title = entry.get("chatTitle")
        result.append(LegacyTab(
            tab_id=tab_id,
            chat_title=title if isinstance(title, str) else "",
            last_send_time=entry.get("lastSendTime"),
            bubbles=[_legacy_bubble(b) for b in entry["bubbles"] if isinstance(b, dict)],
        ))
    return result


def _legacy_bubble(raw: dict) -> LegacyBubble:
    bubble_type = "user" if raw.get("type") == "user" else "ai"
    model_type = raw.get("modelType")
    return LegacyBubble(
        type=bubble_type,
        text=_first_text(raw.get("text")),
        model_type=model_type if bubble_type == "ai" and isinstance(model_type, str) else None,
        selections=_selections(raw.get("selections")),
    )


def _first_text(*candidates) -> str:
    """Return the first non-empty string candidate, or ``""``."""
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return ""


def _selections(raw) -> list[str]:
    if not isinstance(raw, list):
        return []
    snippets = []
    for sel in raw:
        if isinstance(sel, str):
            snippets.append(sel)
        elif isinstance(sel, dict) and isinstance(sel.get("text"), str):
            snippets.append(sel["text"])
    return snippets
