from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

from kpi_digest.io import WorkbookReader, load_grid, write_json, write_text
from kpi_digest.pipeline import extract_records


def test_load_grid_reads_named_sheet_without_header(
    overview_xlsx: Path, overview_rows: list[list[object]]
) -> None:
    grid = load_grid(overview_xlsx, "analysis_overview")

    assert len(grid) == len(overview_rows)
    assert grid[0][0] is None
    assert grid[0][1] == "nOrders"
    assert grid[0][2] is None
    assert grid[2] == [None, "variation", "wow", "variation", "wow"]
    assert grid[3][0] == "Berlin"
    assert grid[3][1] == pytest.approx(0.1234)


def test_load_grid_missing_sheet_raises_value_error(overview_xlsx: Path) -> None:
    with pytest.raises(ValueError, match="nope"):
        load_grid(overview_xlsx, "nope")


def test_load_grid_xlsx_uses_openpyxl_and_no_header(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    xlsx_path = tmp_path / "data.xlsx"
    xlsx_path.write_bytes(b"x")
    calls: list[dict[str, object]] = []

    def _fake_read_excel(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append({"path": path, **kwargs})
        return pd.DataFrame([["a", 1.0], [None, float("nan")]])

    monkeypatch.setattr(pd, "read_excel", _fake_read_excel)

    grid = load_grid(xlsx_path, "overview")

    assert grid == [["a", 1.0], [None, None]]
    assert calls[0]["engine"] == "openpyxl"
    assert calls[0]["header"] is None
    assert calls[0]["sheet_name"] == "overview"


def test_load_grid_csv_ignores_sheet_name(tmp_path: Path) -> None:
    csv_path = tmp_path / "overview.csv"
    csv_path.write_text(
        ",nOrders,\n,more is better,\n,variation,wow\nBerlin,0.5,0.1\n", encoding="utf-8"
    )

    grid = load_grid(csv_path, "whatever")
    records = extract_records(grid)

    assert [r.value for r in records] == ["50%", "10%"]
    assert records[0].area == "Berlin"


def test_load_grid_empty_csv_returns_empty_grid(tmp_path: Path) -> None:
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("", encoding="utf-8")

    assert load_grid(csv_path) == []


def test_load_grid_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match="Input file not found"):
        load_grid(tmp_path / "missing.xlsx")


def test_load_grid_unsupported_suffix_raises(tmp_path: Path) -> None:
    path = tmp_path / "overview.ods"
    path.write_bytes(b"x")

    with pytest.raises(ValueError, match="Unsupported file type"):
        load_grid(path)


def test_workbook_reader_reads_requested_sheet(
    tmp_path: Path, workbook_factory: Callable[..., Path]
) -> None:
    path = workbook_factory(tmp_path / "book.xlsx", [["x", "y"]], sheet="other")

    grid = WorkbookReader(path).read("other")

    assert grid == [["x", "y"]]


def test_write_json_is_sorted_and_atomic(tmp_path: Path) -> None:
    out = write_json(tmp_path / "nested" / "data.json", {"b": 1, "a": datetime(2024, 1, 2)})

    text = out.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert list(json.loads(text)) == ["a", "b"]
    assert json.loads(text)["a"] == "2024-01-02T00:00:00"
    assert not (tmp_path / "nested" / "data.json.tmp").exists()


def test_write_json_rejects_unknown_types(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "bad.json", {"x": object()})


def test_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    out = write_text(tmp_path / "a" / "b.txt", "hello")

    assert out.read_text(encoding="utf-8") == "hello"
