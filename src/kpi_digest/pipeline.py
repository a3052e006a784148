"""Record extraction + CSV formatting — pure functions, no side effects."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any

import pandas as pd

from kpi_digest import RECORD_COLUMNS
from kpi_digest.models import Record, SheetLayout

Grid = Sequence[Sequence[Any]]


class SheetShapeError(ValueError):
    """The overview sheet does not have the block layout we expect."""


class EmptySheetError(SheetShapeError):
    def __init__(self) -> None:
        super().__init__("No data found")


class HeaderOnlySheetError(SheetShapeError):
    def __init__(self) -> None:
        super().__init__("Only header found")


class ColumnCountError(SheetShapeError):
    def __init__(self, data_columns: int, views_per_kpi: int) -> None:
        self.data_columns = data_columns
        self.views_per_kpi = views_per_kpi
        super().__init__(
            "Invalid number of columns: "
            f"{data_columns} data columns is not a multiple of {views_per_kpi} views per KPI"
        )


# ── Cell helpers ─────────────────────────────────────────────────


def _cell(grid: Grid, row: int, col: int) -> Any:
    values = grid[row]
    return values[col] if col < len(values) else None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_set(value: Any) -> bool:
    """Spreadsheet truthiness: empty strings, zero, NaN and booleans false are unset."""
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    try:
        if pd.isna(value):
            return False
    except (TypeError, ValueError):
        return True
    try:
        return bool(value)
    except (TypeError, ValueError):
        return True


def _label(value: Any) -> str:
    if not isinstance(value, str) and _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_percent(value: Any) -> str:
    """Scale a ratio cell by 100 and round half up, e.g. ``0.1234`` -> ``"12%"``.

    Blank cells count as zero; non-numeric cells come out as ``"NaN%"``.
    """
    if _is_blank(value):
        return "0%"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "NaN%"
    if not math.isfinite(number):
        return "NaN%"
    return f"{math.floor(number * 100 + 0.5)}%"


# ── Extraction ───────────────────────────────────────────────────


def grid_shape(grid: Grid) -> tuple[int, int]:
    """Return ``(rows, columns)``; ragged rows count as padded to the longest."""
    nrows = len(grid)
    ncols = max((len(row) for row in grid), default=0)
    return nrows, ncols


def check_grid_shape(grid: Grid, layout: SheetLayout) -> tuple[int, int]:
    """Raise a :class:`SheetShapeError` unless *grid* fits *layout*."""
    nrows, ncols = grid_shape(grid)
    first_row, first_col = layout.first_data_row, layout.first_data_col

    if nrows < first_row or ncols < first_col:
        raise EmptySheetError()
    if nrows == first_row or ncols == first_col:
        raise HeaderOnlySheetError()
    if (ncols - first_col) % layout.views_per_kpi != 0:
        raise ColumnCountError(ncols - first_col, layout.views_per_kpi)
    return nrows, ncols


def extract_records(grid: Grid, layout: SheetLayout | None = None) -> list[Record]:
    """Walk the data area of *grid* block by block and emit one record per view cell.

    Each KPI occupies ``layout.views_per_kpi`` adjacent columns. KPI name and
    direction are read from the first column of the block, the view label from
    the column itself. Slots where any of the three labels is unset (empty
    string, ``None``, zero, NaN) are skipped; whitespace-only labels count as set.
    """
    if layout is None:
        layout = SheetLayout()
    nrows, ncols = check_grid_shape(grid, layout)
    first_col = layout.first_data_col
    width = layout.views_per_kpi

    records: list[Record] = []
    for row in range(layout.first_data_row, nrows):
        area = _label(_cell(grid, row, layout.area_col))
        for col in range(first_col, ncols):
            block_start = (col - first_col) // width * width + first_col
            kpi = _cell(grid, layout.kpi_row, block_start)
            direction = _cell(grid, layout.direction_row, block_start)
            view = _cell(grid, layout.view_row, col)
            if not (_is_set(kpi) and _is_set(direction) and _is_set(view)):
                continue
            records.append(
                Record(
                    area=area,
                    kpi=_label(kpi),
                    direction=_label(direction),
                    view=_label(view),
                    value=format_percent(_cell(grid, row, col)),
                )
            )
    return records


# ── Record helpers ───────────────────────────────────────────────


def records_to_frame(records: Iterable[Record]) -> pd.DataFrame:
    """Return *records* as a DataFrame with the ``Area..Value`` columns."""
    rows = [(r.area, r.kpi, r.direction, r.view, r.value) for r in records]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def records_to_csv(records: Iterable[Record]) -> str:
    """Serialize *records* as CSV text: one header line plus one line per record."""
    return records_to_frame(records).to_csv(index=False, lineterminator="\n")


def unique_areas(records: Iterable[Record]) -> list[str]:
    """Areas in the order they first appear."""
    return list(dict.fromkeys(r.area for r in records))


def kpi_labels(records: Iterable[Record]) -> list[str]:
    """``"kpi (direction)"`` labels in the order they first appear."""
    return list(dict.fromkeys(r.kpi_label for r in records))


def records_for_area(records: Iterable[Record], area: str) -> list[Record]:
    return [r for r in records if r.area == area]
