"""Data models used across the package."""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral
from typing import Any

from kpi_digest import VIEWS


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    return value


@dataclass(frozen=True)
class SheetLayout:
    """Where the header rows and the area column live in the overview sheet.

    The three header rows hold, per column, the KPI name, its direction
    (whether more or less is better) and the view label. The area column
    names the business area of each data row. Data starts right after the
    last header row and right after the area column.
    """

    kpi_row: int = 0
    direction_row: int = 1
    view_row: int = 2
    area_col: int = 0
    views_per_kpi: int = len(VIEWS)

    def __post_init__(self) -> None:
        for name in ("kpi_row", "direction_row", "view_row", "area_col", "views_per_kpi"):
            object.__setattr__(self, name, _to_non_negative_int(getattr(self, name), name))
        if self.views_per_kpi < 1:
            raise ValueError("views_per_kpi must be >= 1")
        if len({self.kpi_row, self.direction_row, self.view_row}) != 3:
            raise ValueError("kpi_row, direction_row and view_row must be distinct")

    @property
    def first_data_row(self) -> int:
        return max(self.kpi_row, self.direction_row, self.view_row) + 1

    @property
    def first_data_col(self) -> int:
        return self.area_col + 1


@dataclass(frozen=True)
class Record:
    """One KPI view value for one area, ready to be shown to the LLM."""

    area: str
    kpi: str
    direction: str
    view: str
    value: str

    def __post_init__(self) -> None:
        for name in ("area", "kpi", "direction", "view", "value"):
            _to_string(getattr(self, name), name)

    @property
    def kpi_label(self) -> str:
        return f"{self.kpi} ({self.direction})"

    def to_dict(self) -> dict[str, str]:
        return {
            "area": self.area,
            "kpi": self.kpi,
            "direction": self.direction,
            "view": self.view,
            "value": self.value,
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single digest run."""

    tool: str = "kpi-digest"
    version: str = ""
    input_path: str = ""
    sheet_name: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    records: int = 0
    areas: int = 0
    sha256: str = ""
    sent: bool = False
    status: str = "success"
    error_message: str = ""

    def __post_init__(self) -> None:
        self.records = _to_non_negative_int(self.records, "records")
        self.areas = _to_non_negative_int(self.areas, "areas")
        if self.status not in {"success", "failed"}:
            raise ValueError(f"status must be 'success' or 'failed', got {self.status!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "input_path": self.input_path,
            "sheet_name": self.sheet_name,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "records": self.records,
            "areas": self.areas,
            "sha256": self.sha256,
            "sent": self.sent,
            "status": self.status,
            "error_message": self.error_message,
        }
