"""Error types for chat resolution and export."""


class ChatExportError(Exception):
    """Base error for cursor-chat-export."""

    pass


class WorkspaceNotFoundError(ChatExportError):
    """The workspace has no chat history at all."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__(f"No chat data found for workspace: {workspace_id}")
        self.workspace_id = workspace_id


class MalformedSourceError(ChatExportError):
    """A source record exists but cannot be decoded into the expected shape."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Malformed {source}: {reason}")
        self.source = source
        self.reason = reason


class StoreUnavailableError(ChatExportError):
    """A key-value store could not be opened or queried."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Store unavailable at {path}: {reason}")
        self.path = path
        self.reason = reason
