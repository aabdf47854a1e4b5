import json

import pytest

import aero_directory
from conftest import HEADER


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("AERO_DATA_FILE", str(tmp_path / "missing.xlsx"))
    monkeypatch.setenv("AERO_FALLBACK_SOURCES", "")
    monkeypatch.setenv("AERO_SNAPSHOT_PATH", str(tmp_path / "snapshot.json"))
    monkeypatch.setenv("AERO_ALIAS_CONFIG", str(tmp_path / "aliases.yaml"))


@pytest.fixture
def companies(write_xlsx, directory_rows):
    return write_xlsx("companies.xlsx", {"Directory": directory_rows})


def test_load_prints_summary(companies, capsys):
    assert aero_directory.main(["load", "--source", str(companies)]) == 0
    out = capsys.readouterr().out
    assert "Sheet:   Directory" in out
    assert "Records: 3 (2 with coordinates)" in out


def test_load_failure_exits_nonzero(tmp_path):
    assert aero_directory.main(["load", "--source", str(tmp_path / "nope.xlsx")]) == 1


def test_scan_reports_strategy(write_xlsx, capsys):
    path = write_xlsx(
        "titled.xlsx",
        {"Cover": [["Directory"]], "Data": [["Directory 2024"], [], HEADER, ["Acme Space", "48.1", "11.5", "Space"]]},
    )
    assert aero_directory.main(["scan", "--source", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Sheet:   Data" in out
    assert "Strategy: header-scan" in out


def test_search_maps_loose_tokens(companies, capsys):
    code = aero_directory.main(["search", "--source", str(companies), "--type", "research", "--domain", "aviation"])
    assert code == 0
    out = capsys.readouterr().out
    assert "skyline-aero" in out
    assert "acme-space" not in out


def test_export_json(companies, tmp_path):
    output = tmp_path / "export" / "companies.json"
    assert aero_directory.main(["export", "--source", str(companies), "--output", str(output)]) == 0
    assert [item["id"] for item in json.loads(output.read_text(encoding="utf-8"))] == [
        "acme-space",
        "orbit-works",
        "skyline-aero",
    ]


def test_export_rejects_unknown_format(companies, tmp_path):
    assert aero_directory.main(["export", "--source", str(companies), "--output", str(tmp_path / "x.txt")]) == 1


def test_snapshot_cycle(companies, tmp_path, capsys):
    snapshot_path = tmp_path / "snapshot.json"

    assert aero_directory.main(["snapshot", "restore"]) == 1
    assert aero_directory.main(["snapshot", "save", "--source", str(companies)]) == 0
    assert len(json.loads(snapshot_path.read_text(encoding="utf-8"))["aero-data"]) == 3

    capsys.readouterr()
    assert aero_directory.main(["snapshot", "restore"]) == 0
    assert "Records: 3" in capsys.readouterr().out

    assert aero_directory.main(["snapshot", "sample", "--path", str(tmp_path / "other.json")]) == 0
    assert aero_directory.main(["snapshot", "clear"]) == 0
    assert json.loads(snapshot_path.read_text(encoding="utf-8")) == {}


@pytest.mark.parametrize("action", ["restore", "clear", "save", "sample"])
def test_corrupt_snapshot_file_exits_nonzero(tmp_path, caplog, action):
    snapshot_path = tmp_path / "snapshot.json"
    snapshot_path.write_text("{not json", encoding="utf-8")

    assert aero_directory.main(["snapshot", action]) == 1
    assert "Snapshot is unreadable" in caplog.text
    assert snapshot_path.read_text(encoding="utf-8") == "{not json"


def test_no_command_prints_help(capsys):
    assert aero_directory.main([]) == 0
    assert "usage" in capsys.readouterr().out
