from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from openpyxl import Workbook

OVERVIEW_ROWS: list[list[object]] = [
    [None, "nOrders", None, "ADT Wolt", None],
    [None, "more is better", None, "less is better", None],
    [None, "variation", "wow", "variation", "wow"],
    ["Berlin", 0.1234, -0.05, 0.6, 0.115],
    ["Hamburg", 0.2, 0.015, 0.333, -0.25],
]


def write_workbook(path: Path, rows: list[list[object]], sheet: str = "analysis_overview") -> Path:
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = "Readme"
    ws.append(["KPI overview export"])
    data_ws = wb.create_sheet(title=sheet)
    for row in rows:
        data_ws.append(row)
    wb.save(path)
    return path


@pytest.fixture
def overview_rows() -> list[list[object]]:
    return [list(row) for row in OVERVIEW_ROWS]


@pytest.fixture
def workbook_factory() -> Callable[..., Path]:
    return write_workbook


@pytest.fixture
def overview_xlsx(tmp_path: Path) -> Path:
    return write_workbook(tmp_path / "overview.xlsx", OVERVIEW_ROWS)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OPENAI_API_KEY", "KPI_DIGEST_API_KEY", "KPI_DIGEST_RECIPIENTS"):
        monkeypatch.delenv(name, raising=False)
