"""Tests for the command-line entry point and the CSV extract reader."""

import json
import sqlite3
from pathlib import Path

import pytest

from ecosystem_index.cli import _parse_args, _settings_from_args, main
from ecosystem_index.errors import MissingExtractError
from ecosystem_index.extracts import CsvExtractSource, RawExtracts


def _write_extracts(directory: Path, frames) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, frame in frames.items():
        frame.to_csv(directory / f"{name}.csv", index=False)
    return directory


def test_csv_source_reads_text_columns(tmp_path: Path, frames) -> None:
    frames["distributions"].loc[0, "version"] = "1.10"
    source = CsvExtractSource(_write_extracts(tmp_path / "extracts", frames))

    assert source.has("authors")
    assert not source.has("tickets")
    assert source.read("distributions").loc[0, "version"] == "1.10"
    assert source.age("authors") >= 0
    assert source.age("tickets") is None
    with pytest.raises(MissingExtractError):
        source.read("tickets")


def test_raw_extracts_from_csv_source(tmp_path: Path, frames) -> None:
    source = CsvExtractSource(_write_extracts(tmp_path / "extracts", frames))

    extracts = RawExtracts.from_source(source)

    assert extracts.available("modules")
    assert not extracts.available("ratings")
    assert extracts.get("ratings").empty
    assert list(extracts.get("ratings").columns) == ["distribution", "rating", "review_count"]


def test_settings_from_args(tmp_path: Path) -> None:
    args = _parse_args([
        "--extracts", str(tmp_path),
        "--sqlite", str(tmp_path / "out.db"),
        "--batch-size", "10",
        "--umbrella-prefix", "Bundle-",
        "--keep-intermediate",
        "--no-vacuum",
    ])

    settings = _settings_from_args(args)

    assert settings.sqlite_path == tmp_path / "out.db"
    assert settings.batch_size == 10
    assert settings.umbrella_prefixes == ("Bundle-",)
    assert settings.keep_intermediate
    assert not settings.vacuum


def test_main_writes_index_and_summary(tmp_path: Path, frames, capsys) -> None:
    extracts_dir = _write_extracts(tmp_path / "extracts", frames)
    database = tmp_path / "out" / "index.db"

    status = main([
        "--extracts", str(extracts_dir),
        "--sqlite", str(database),
        "--summary-dir", str(tmp_path / "summary"),
    ])

    assert status == 0
    assert database.exists()
    assert "Index written to:" in capsys.readouterr().out

    summary = json.loads((tmp_path / "summary" / "index_summary.json").read_text())
    assert summary["tables"]["distribution"] == 2

    with sqlite3.connect(database) as connection:
        rows = connection.execute(
            "SELECT distribution, weight, volatility FROM distribution ORDER BY distribution"
        ).fetchall()
    assert rows == [("Bar", 1, 0), ("Foo", 0, 1)]


def test_main_reports_missing_required_extract(tmp_path: Path, frames, capsys) -> None:
    del frames["modules"]
    extracts_dir = _write_extracts(tmp_path / "extracts", frames)

    status = main(["--extracts", str(extracts_dir), "--sqlite", str(tmp_path / "index.db")])

    assert status == 1
    assert "modules" in capsys.readouterr().err


def test_main_rejects_bad_batch_size(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["--extracts", str(tmp_path), "--batch-size", "0"])


def test_main_rejects_missing_extract_directory(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main(["--extracts", str(tmp_path / "nowhere")])


def test_main_keeps_previous_index_when_extract_missing(tmp_path: Path, frames) -> None:
    database = tmp_path / "index.db"
    database.write_bytes(b"previous index")
    del frames["requires"]
    extracts_dir = _write_extracts(tmp_path / "extracts", frames)

    status = main(["--extracts", str(extracts_dir), "--sqlite", str(database)])

    assert status == 1
    assert database.read_bytes() == b"previous index"
