"""CLI entry point for cursor-chat-export."""

import json
import logging
from pathlib import Path

import click
import uvicorn

from .errors import StoreUnavailableError, WorkspaceNotFoundError
from .export import FORMATS, archive_filename, export_all, render, unique_filenames
from .resolver import ChatResolver


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """Browse and export Cursor chat history."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting cursor-chat-export on http://{host}:{port}")
    uvicorn.run("cursor_chat_export.server:app", host=host, port=port, reload=False)


@main.command()
def workspaces():
    """List workspaces that hold a state database."""
    for ws in ChatResolver().list_workspaces():
        click.echo(f"{ws.id}\t{ws.display_path}")


@main.command()
@click.argument("workspace_id")
def tabs(workspace_id: str):
    """Print the resolved chat tabs of a workspace as JSON."""
    resolved = _resolve_or_exit(ChatResolver(), workspace_id)
    click.echo(json.dumps({"tabs": [t.to_dict() for t in resolved]}, indent=2, ensure_ascii=False))


@main.command()
@click.argument("workspace_id")
@click.option("--format", "fmt", type=click.Choice(FORMATS), default="markdown", show_default=True)
@click.option("--tab", "tab_id", default=None, help="Only export the tab with this id.")
@click.option(
    "--output-dir", "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
)
def export(workspace_id: str, fmt: str, tab_id: str | None, output_dir: Path):
    """Export the chat tabs of one workspace as files."""
    resolved = _resolve_or_exit(ChatResolver(), workspace_id)
    if tab_id:
        resolved = [t for t in resolved if t.id == tab_id]
        if not resolved:
            raise click.ClickException(f"No tab {tab_id} in workspace {workspace_id}")

    output_dir.mkdir(parents=True, exist_ok=True)
    for tab, name in unique_filenames(resolved, fmt):
        path = output_dir / name
        try:
            path.write_text(render(tab, fmt), encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"Cannot write {path}: {e.strerror or e}") from e
        click.echo(str(path))


@main.command("export-all")
@click.option("--format", "fmt", type=click.Choice(["markdown", "html"]), default="markdown", show_default=True)
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
def export_all_command(fmt: str, output: Path | None):
    """Export every workspace's chats into one zip archive."""
    data = export_all(ChatResolver(), fmt)
    if data is None:
        raise click.ClickException("No chat logs to export")

    output = output or Path(archive_filename(fmt))
    output.write_bytes(data)
    click.echo(f"Wrote {output}")


def _resolve_or_exit(resolver: ChatResolver, workspace_id: str):
    try:
        return resolver.resolve(workspace_id)
    except WorkspaceNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except StoreUnavailableError as e:
        raise click.ClickException(str(e)) from e
