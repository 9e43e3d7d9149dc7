"""Core data models for cursor-chat-export."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Workspace:
    """A Cursor workspaceStorage entry."""

    id: str  # workspaceStorage directory name
    display_path: str  # decoded folder URI, e.g. "/home/dev/projects/webapp"
    last_modified: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_path": self.display_path,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass
class ChatBubble:
    """A single message turn within a chat tab."""

    type: str  # "user" | "ai"
    text: str = ""
    model_type: Optional[str] = None  # only set on "ai" bubbles
    selections: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {"type": self.type, "text": self.text, "selections": list(self.selections)}
        if self.model_type is not None:
            data["modelType"] = self.model_type
        return data


@dataclass
class ChatTab:
    """One resolved conversation."""

    id: str
    title: str
    timestamp: datetime
    bubbles: list[ChatBubble] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "timestamp": self.timestamp.isoformat(),
            "bubbles": [b.to_dict() for b in self.bubbles],
        }
