"""Tests for CLI commands."""

import json
from pathlib import Path

import pytest

from entity_canvas import cli, config_commands
from entity_canvas.config import Config


@pytest.fixture
def vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A small vault with an isolated config."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
    root = tmp_path / "vault"
    (root / "tasks").mkdir(parents=True)
    (root / "tasks" / "T-001.md").write_text("---\nid: T-001\ntype: task\n---\n", encoding="utf-8")
    (root / "tasks" / "T-002.md").write_text(
        "---\nid: T-002\ntype: task\ndepends_on: [T-001]\nparent: M-404\n---\n", encoding="utf-8"
    )
    return root


def test_populate_writes_canvas(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that populate creates the canvas inside the vault."""
    cli.populate(vault=str(vault))

    data = json.loads((vault / "project.canvas").read_text(encoding="utf-8"))
    assert {node["file"] for node in data["nodes"]} == {"tasks/T-001.md", "tasks/T-002.md"}
    assert len(data["edges"]) == 1
    out = capsys.readouterr().out
    assert "Populate: added 2, archived 0, removed 0, repositioned 0" in out
    assert "Orphan: T-002 has missing parent M-404" in out


def test_reposition_uses_configured_canvas(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that the canvas path comes from config when not given."""
    Config().set("canvas.path", "boards/main.canvas")
    cli.reposition(vault=str(vault))
    assert (vault / "boards" / "main.canvas").exists()
    assert "Reposition: added 2" in capsys.readouterr().out


def test_check_writes_nothing(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that check reports problems without creating a canvas."""
    cli.check(vault=str(vault))

    assert not (vault / "project.canvas").exists()
    out = capsys.readouterr().out
    assert "Found 2 record(s), 1 lane(s), 1 orphan(s)" in out
    assert "Orphan: T-002 has missing parent M-404" in out


def test_failed_pass_exits(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that an unreadable canvas aborts with an error message."""
    (vault / "project.canvas").write_text("{broken", encoding="utf-8")
    with pytest.raises(SystemExit) as exc_info:
        cli.populate(vault=str(vault))
    assert exc_info.value.code == 1
    assert "Error: populate failed" in capsys.readouterr().err
    assert (vault / "project.canvas").read_text(encoding="utf-8") == "{broken"


def test_bad_layout_setting_exits(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a hand-edited non-numeric layout value aborts before writing."""
    Config().set("layout.row_gap", "wide")
    with pytest.raises(SystemExit) as exc_info:
        cli.check(vault=str(vault))
    assert exc_info.value.code == 1
    assert "layout.row_gap must be a whole number" in capsys.readouterr().err


def test_config_set_coerces_layout_values(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that layout settings are stored as numbers."""
    config_commands.set("layout.column_gap", "120")
    assert Config().get("layout.column_gap") == 120
    assert "Set layout.column_gap = 120 (local)" in capsys.readouterr().out


def test_config_set_rejects_unknown_keys(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a misspelled setting is refused."""
    with pytest.raises(SystemExit):
        config_commands.set("layout.colum_gap", "120")
    assert "Unknown setting layout.colum_gap" in capsys.readouterr().err


def test_config_set_rejects_non_numeric_layout(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that layout values must be whole numbers."""
    with pytest.raises(SystemExit):
        config_commands.set("layout.row_gap", "wide")
    assert Config().get("layout.row_gap") is None


def test_config_get_marks_defaults(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test that get tells defaults apart from configured values."""
    config_commands.get("canvas.path")
    config_commands.set("vault.path", "notes")
    config_commands.get("vault.path")
    out = capsys.readouterr().out
    assert "canvas.path = project.canvas (default)" in out
    assert "vault.path = notes\n" in out


def test_config_layout_shows_effective_sizes(vault: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Test the layout summary after overriding one type's width."""
    config_commands.set("layout.milestone.width", "640")
    config_commands.layout()
    out = capsys.readouterr().out
    assert "milestone: 640 x 200" in out
    assert "task: 400 x 200" in out
    assert "orphan_columns = auto" in out
