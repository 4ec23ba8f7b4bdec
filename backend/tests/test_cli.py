from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest

from app import cli
from app.core.config import Settings


def _file_settings(settings: Settings, tmp_path: Path) -> Settings:
    return settings.model_copy(
        update={"subscriber_backend": "file", "subscribers_file": str(tmp_path / "store" / "subscribers.json")}
    )


def test_resolve_json_path_validation_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit, match="Path is required"):
        cli._resolve_json_path("", must_exist=True)

    with pytest.raises(SystemExit, match="Only JSON file names are allowed"):
        cli._resolve_json_path("nested/out.json", must_exist=False)

    with pytest.raises(SystemExit, match="Invalid JSON file name"):
        cli._resolve_json_path("out.txt", must_exist=False)

    with pytest.raises(SystemExit, match="Input file not found"):
        cli._resolve_json_path("missing.json", must_exist=True)

    (tmp_path / "folder.json").mkdir()
    with pytest.raises(SystemExit, match="Output path points to a directory"):
        cli._resolve_json_path("folder.json", must_exist=False)

    assert cli._resolve_json_path("out.json", must_exist=False) == (tmp_path / "out.json").resolve()


def test_import_then_export_round_trip(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    file_settings = _file_settings(settings, tmp_path)
    (tmp_path / "legacy.json").write_text(
        json.dumps(
            {
                "subscribers": [
                    "First@Example.com",
                    {"email": "second@example.com"},
                    "first@example.com",
                    "not-an-email",
                    None,
                ]
            }
        ),
        encoding="utf-8",
    )

    assert cli._run_cli_command(argparse.Namespace(command="import-subscribers", input="legacy.json"), file_settings)
    counts = json.loads(capsys.readouterr().out)
    assert counts == {"imported": 2, "skipped": 1, "invalid": 2}

    assert cli._run_cli_command(argparse.Namespace(command="export-subscribers", output="out.json"), file_settings)
    exported = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    assert exported == {"subscribers": ["first@example.com", "second@example.com"]}

    assert cli._run_cli_command(argparse.Namespace(command="list-subscribers"), file_settings)
    capsys.readouterr()


def test_list_subscribers_prints_newest_first(
    tmp_path: Path, settings: Settings, capsys: pytest.CaptureFixture[str]
) -> None:
    file_settings = _file_settings(settings, tmp_path)
    store_path = tmp_path / "store" / "subscribers.json"
    store_path.parent.mkdir(parents=True)
    store_path.write_text(json.dumps({"subscribers": ["old@example.com", "new@example.com"]}), encoding="utf-8")

    assert cli._run_cli_command(argparse.Namespace(command="list-subscribers"), file_settings)
    printed = json.loads(capsys.readouterr().out)
    assert printed == {
        "subscribers": [
            {"email": "new@example.com", "created_at": None},
            {"email": "old@example.com", "created_at": None},
        ]
    }


def test_init_db_creates_sql_table(tmp_path: Path, settings: Settings, capsys: pytest.CaptureFixture[str]) -> None:
    db_settings = settings.model_copy(
        update={"subscriber_backend": "database", "database_url": f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"}
    )
    assert cli._run_cli_command(argparse.Namespace(command="init-db"), db_settings)
    assert "database" in capsys.readouterr().out
    assert (tmp_path / "cli.db").exists()


def test_init_db_creates_subscriber_file(tmp_path: Path, settings: Settings) -> None:
    file_settings = _file_settings(settings, tmp_path)
    assert cli._run_cli_command(argparse.Namespace(command="init-db"), file_settings)
    document = json.loads((tmp_path / "store" / "subscribers.json").read_text(encoding="utf-8"))
    assert document == {"subscribers": []}


def test_serve_passes_port(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
    calls: list[tuple[str, str, int]] = []

    import uvicorn

    monkeypatch.setattr(uvicorn, "run", lambda target, host, port: calls.append((target, host, port)))
    assert cli._run_cli_command(argparse.Namespace(command="serve", host="127.0.0.1"), settings)
    assert calls == [("app.main:app", "127.0.0.1", settings.port)]


def test_unknown_command_returns_false(settings: Settings) -> None:
    assert cli._run_cli_command(argparse.Namespace(command=None), settings) is False
