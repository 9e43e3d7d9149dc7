"""Export chat tabs to Markdown, HTML, print pages and zip archives.

Markdown is the canonical rendering; every other format derives from it.
"""

import html
import io
import logging
import zipfile
from dataclasses import dataclass

import markdown

from .core import ChatTab
from .errors import StoreUnavailableError, WorkspaceNotFoundError

logger = logging.getLogger(__name__)

FORMATS = ("markdown", "html", "pdf")

MISSING_MODEL_LABEL = "unknown"

MAX_STEM_BYTES = 200

PAGE_STYLE = """\
body { font-family: system-ui, sans-serif; max-width: 800px; margin: 0 auto; padding: 2rem; }
pre { background: #f6f8fa; padding: 1rem; border-radius: 6px; overflow-x: auto; }
hr { border: 0; border-top: 1px solid #eaecef; margin: 2rem 0; }"""

PRINT_SCRIPT = "<script>window.addEventListener('load', function () { window.print(); });</script>"


@dataclass
class ExportFile:
    """A named file destined for an export archive."""

    path: str  # "<workspace id>/<file name>"
    content: str


def chat_to_markdown(tab: ChatTab) -> str:
    """Render a chat tab as Markdown."""
    parts = [
        f"# {tab.title or f'Chat {tab.id}'}",
        f"_Created: {_format_created(tab)}_",
        "---",
    ]

    for bubble in tab.bubbles:
        if bubble.type == "ai":
            parts.append(f"### AI ({bubble.model_type or MISSING_MODEL_LABEL})")
        else:
            parts.append("### User")

        if bubble.selections:
            parts.append("**Selected Code:**")
            for selection in bubble.selections:
                parts.append(f"```\n{selection}\n```")

        if bubble.text:
            parts.append(bubble.text)

        parts.append("---")

    return "".join(f"{part}\n\n" for part in parts)


def markdown_to_html(text: str) -> str:
    return markdown.markdown(text, extensions=["fenced_code", "tables"])


def chat_to_html(tab: ChatTab) -> str:
    """Render a chat tab as a standalone HTML page."""
    return _page(tab, markdown_to_html(chat_to_markdown(tab)))


def chat_to_print_html(tab: ChatTab) -> str:
    """Render a chat tab as an HTML page that opens the browser print dialog.

    Saving from that dialog is how a tab becomes a PDF.
    """
    return _page(tab, markdown_to_html(chat_to_markdown(tab)), extra_head=PRINT_SCRIPT)


def render(tab: ChatTab, fmt: str) -> str:
    """Render a tab in one of FORMATS."""
    if fmt == "markdown":
        return chat_to_markdown(tab)
    if fmt == "html":
        return chat_to_html(tab)
    if fmt == "pdf":
        return chat_to_print_html(tab)
    raise ValueError(f"Unknown export format: {fmt}")


def export_filename(tab: ChatTab, fmt: str) -> str:
    """Return the download file name for a tab."""
    stem = tab.title or f"chat-{tab.id}"
    stem = stem.replace("/", "-").replace("\\", "-").strip()
    # Most filesystems cap a name at 255 bytes; leave room for suffix and extension
    stem = stem.encode("utf-8")[:MAX_STEM_BYTES].decode("utf-8", errors="ignore").strip()
    return f"{stem or f'chat-{tab.id[:40]}'}.{_extension(fmt)}"


def unique_filenames(tabs: list[ChatTab], fmt: str) -> list[tuple[ChatTab, str]]:
    """Pair each tab with a file name, adding `` (n)`` to repeated names."""
    pairs = []
    seen: dict[str, int] = {}
    for tab in tabs:
        name = export_filename(tab, fmt)
        count = seen.get(name, 0) + 1
        seen[name] = count
        if count > 1:
            stem, ext = name.rsplit(".", 1)
            name = f"{stem} ({count}).{ext}"
        pairs.append((tab, name))
    return pairs


def tabs_to_files(workspace_id: str, tabs: list[ChatTab], fmt: str) -> list[ExportFile]:
    """Map one workspace's tabs to archive files.

    PDF has no archive form; it falls back to Markdown.
    """
    archive_fmt = "html" if fmt == "html" else "markdown"
    kept = []
    for tab in tabs:
        if not tab.bubbles:
            logger.warning("Skipping tab %s in workspace %s: no bubbles", tab.id, workspace_id)
            continue
        kept.append(tab)

    return [
        ExportFile(path=f"{workspace_id}/{name}", content=render(tab, archive_fmt))
        for tab, name in unique_filenames(kept, archive_fmt)
    ]


def build_archive(files: list[ExportFile]) -> bytes:
    """Write export files into an in-memory zip archive."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            zf.writestr(f.path, f.content)
    return buf.getvalue()


def archive_filename(fmt: str) -> str:
    return f"cursor-logs.{'html' if fmt == 'html' else 'md'}.zip"


def export_all(resolver, fmt: str) -> bytes | None:
    """Export every workspace's tabs into one zip archive.

    Workspaces are processed one after another. Workspaces that cannot be
    resolved or have no tabs are skipped. Returns None when nothing was
    exported.
    """
    workspaces = resolver.list_workspaces()
    logger.info("Exporting %d workspaces as %s", len(workspaces), fmt)

    files: list[ExportFile] = []
    for ws in workspaces:
        try:
            tabs = resolver.resolve(ws.id)
        except WorkspaceNotFoundError:
            logger.debug("No chat data in workspace %s", ws.id)
            continue
        except StoreUnavailableError as e:
            logger.warning("Skipping workspace %s: %s", ws.id, e)
            continue

        if not tabs:
            logger.debug("No chat logs found in workspace %s", ws.id)
            continue
        files.extend(tabs_to_files(ws.id, tabs, fmt))

    if not files:
        logger.error("No files were added to the archive")
        return None

    logger.info("Building archive with %d files", len(files))
    return build_archive(files)


def _page(tab: ChatTab, body: str, extra_head: str = "") -> str:
    title = html.escape(tab.title or f"Chat {tab.id}")
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{title}</title>\n"
        f"<style>\n{PAGE_STYLE}\n</style>\n"
        f"{extra_head}"
        "</head>\n"
        f"<body>{body}</body>\n"
        "</html>\n"
    )


def _format_created(tab: ChatTab) -> str:
    # %c is the locale's date and time representation
    return tab.timestamp.astimezone().strftime("%c")


def _extension(fmt: str) -> str:
    return "html" if fmt in ("html", "pdf") else "md"
