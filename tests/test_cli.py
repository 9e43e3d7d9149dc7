"""Tests for the click CLI."""

import io
import json
import zipfile

import pytest
from click.testing import CliRunner

from cursor_chat_export.cli import main


@pytest.fixture
def cli_env(populated_storage, global_db_path):
    return {
        "CURSOR_CHAT_WORKSPACE_PATH": str(populated_storage / "workspaceStorage"),
        "CURSOR_CHAT_GLOBAL_DB": str(global_db_path),
    }


def test_workspaces(cli_env):
    result = CliRunner().invoke(main, ["workspaces"], env=cli_env)
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines[0] == "ws-composer\t/Users/testuser/dev/my project"
    assert len(lines) == 3


def test_tabs_json(cli_env):
    result = CliRunner().invoke(main, ["tabs", "ws-legacy"], env=cli_env)
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["tabs"][0]["id"] == "legacy-tab-001"
    assert data["tabs"][0]["title"] == "What is Python?"


def test_tabs_not_found(cli_env):
    result = CliRunner().invoke(main, ["tabs", "ws-empty"], env=cli_env)
    assert result.exit_code == 1
    assert "No chat data found" in result.output


def test_export_workspace(cli_env, tmp_path):
    out = tmp_path / "out"
    result = CliRunner().invoke(main, ["export", "ws-composer", "--format", "html", "-o", str(out)], env=cli_env)
    assert result.exit_code == 0
    assert sorted(p.name for p in out.iterdir()) == ["Chat comp-uui.html", "Fix auth bug.html"]


def test_export_single_tab(cli_env, tmp_path):
    out = tmp_path / "out"
    result = CliRunner().invoke(
        main, ["export", "ws-composer", "--tab", "comp-uuid-001", "-o", str(out)], env=cli_env
    )
    assert result.exit_code == 0
    assert [p.name for p in out.iterdir()] == ["Fix auth bug.md"]
    assert (out / "Fix auth bug.md").read_text(encoding="utf-8").startswith("# Fix auth bug")


def test_export_unknown_tab(cli_env, tmp_path):
    result = CliRunner().invoke(main, ["export", "ws-composer", "--tab", "nope", "-o", str(tmp_path)], env=cli_env)
    assert result.exit_code == 1
    assert "No tab nope" in result.output


def test_export_all(cli_env, tmp_path):
    archive = tmp_path / "logs.zip"
    result = CliRunner().invoke(main, ["export-all", "-o", str(archive)], env=cli_env)
    assert result.exit_code == 0
    with zipfile.ZipFile(io.BytesIO(archive.read_bytes())) as zf:
        assert len(zf.namelist()) == 3


def test_export_all_empty(tmp_path):
    storage = tmp_path / "workspaceStorage"
    storage.mkdir()
    env = {"CURSOR_CHAT_WORKSPACE_PATH": str(storage), "CURSOR_CHAT_GLOBAL_DB": str(tmp_path / "g.vscdb")}
    result = CliRunner().invoke(main, ["export-all", "-o", str(tmp_path / "x.zip")], env=env)
    assert result.exit_code == 1
    assert "No chat logs to export" in result.output


@pytest.fixture
def same_title_env(make_workspace, make_global, global_db_path, cursor_user_dir):
    make_workspace("ws-dupes", {
        "composer.composerData": {
            "allComposers": [
                {"composerId": "c1", "name": "New chat"},
                {"composerId": "c2", "name": "New chat"},
                {"composerId": "c3", "name": "x" * 300},
            ]
        }
    })
    make_global({
        f"composerData:{cid}": {"conversation": [{"type": 1, "text": cid}]}
        for cid in ("c1", "c2", "c3")
    })
    return {
        "CURSOR_CHAT_WORKSPACE_PATH": str(cursor_user_dir / "workspaceStorage"),
        "CURSOR_CHAT_GLOBAL_DB": str(global_db_path),
    }


def test_export_keeps_same_titled_tabs(same_title_env, tmp_path):
    out = tmp_path / "out"
    result = CliRunner().invoke(main, ["export", "ws-dupes", "-o", str(out)], env=same_title_env)
    assert result.exit_code == 0, result.output

    names = sorted(p.name for p in out.iterdir())
    assert "New chat.md" in names
    assert "New chat (2).md" in names
    assert len(names) == 3
    assert "c2" in (out / "New chat (2).md").read_text(encoding="utf-8")


def test_export_long_title_is_truncated(same_title_env, tmp_path):
    out = tmp_path / "out"
    result = CliRunner().invoke(
        main, ["export", "ws-dupes", "--tab", "c3", "-o", str(out)], env=same_title_env
    )
    assert result.exit_code == 0, result.output

    [written] = list(out.iterdir())
    assert len(written.name.encode("utf-8")) <= 255
    assert written.name.startswith("xxxx")
    assert written.name.endswith(".md")
