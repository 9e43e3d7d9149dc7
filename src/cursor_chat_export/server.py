"""FastAPI web server for cursor-chat-export."""

import logging
import urllib.parse

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, Response

from .errors import StoreUnavailableError, WorkspaceNotFoundError
from .export import archive_filename, export_all, export_filename, render
from .resolver import ChatResolver

logger = logging.getLogger(__name__)

app = FastAPI(title="cursor-chat-export", version="0.1.0")

# Resolver (created on first request)
_resolver: ChatResolver | None = None

_MEDIA_TYPES = {
    "markdown": "text/markdown; charset=utf-8",
    "html": "text/html; charset=utf-8",
    "pdf": "text/html; charset=utf-8",
}


def _get_resolver() -> ChatResolver:
    """Lazily initialize and cache the resolver."""
    global _resolver
    if _resolver is None:
        _resolver = ChatResolver()
        logger.info("Reading workspaces from %s", _resolver.get_base_path())
    return _resolver


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _content_disposition(disposition: str, filename: str) -> str:
    quoted = urllib.parse.quote(filename)
    ascii_name = "".join(c if c.isascii() and c not in '"\\' else "_" for c in filename)
    return f"{disposition}; filename=\"{ascii_name}\"; filename*=UTF-8''{quoted}"


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/workspaces")
async def get_workspaces():
    """Return all workspaces that hold a state database."""
    return [ws.to_dict() for ws in _get_resolver().list_workspaces()]


@app.get("/api/workspaces/{workspace_id}/tabs")
async def get_tabs(workspace_id: str):
    """Return the resolved chat tabs of one workspace."""
    try:
        tabs = _get_resolver().resolve(workspace_id)
    except WorkspaceNotFoundError:
        return _error(404, "No chat data found")
    except StoreUnavailableError as e:
        logger.error("Failed to get workspace data for %s: %s", workspace_id, e)
        return _error(500, "Failed to get workspace data")
    except Exception:
        logger.exception("Unexpected error resolving workspace %s", workspace_id)
        return _error(500, "Failed to get workspace data")

    return {"tabs": [tab.to_dict() for tab in tabs]}


@app.get("/api/workspaces/{workspace_id}/tabs/{tab_id}/export")
async def export_tab(
    workspace_id: str,
    tab_id: str,
    format: str = Query("markdown", description="Export format: markdown, html or pdf"),
):
    """Export a single chat tab."""
    if format not in _MEDIA_TYPES:
        return _error(400, f"Unknown export format: {format}")

    try:
        tabs = _get_resolver().resolve(workspace_id)
    except WorkspaceNotFoundError:
        return _error(404, "No chat data found")
    except StoreUnavailableError as e:
        logger.error("Failed to get workspace data for %s: %s", workspace_id, e)
        return _error(500, "Failed to get workspace data")
    except Exception:
        logger.exception("Unexpected error resolving workspace %s", workspace_id)
        return _error(500, "Failed to get workspace data")

    tab = next((t for t in tabs if t.id == tab_id), None)
    if tab is None:
        return _error(404, "Chat not found")

    # The print page is shown, not downloaded
    disposition = "inline" if format == "pdf" else "attachment"
    return Response(
        content=render(tab, format),
        media_type=_MEDIA_TYPES[format],
        headers={"Content-Disposition": _content_disposition(disposition, export_filename(tab, format))},
    )


@app.get("/api/export")
async def export_archive(
    format: str = Query("markdown", description="Export format: markdown or html"),
):
    """Export every workspace's chats as a zip archive."""
    if format not in _MEDIA_TYPES:
        return _error(400, f"Unknown export format: {format}")

    data = export_all(_get_resolver(), format)
    if data is None:
        return _error(404, "No chat logs to export")

    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": _content_disposition("attachment", archive_filename(format))},
    )
