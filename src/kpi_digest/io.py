"""I/O helpers — read the overview sheet as a grid, write run artifacts."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Protocol, cast

import pandas as pd

from kpi_digest.pipeline import Grid

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def _frame_to_grid(df: pd.DataFrame) -> list[list[Any]]:
    df = df.astype(object).where(pd.notna(df), None)
    return [list(row) for row in df.itertuples(index=False, name=None)]


def load_grid(path: Path, sheet_name: str | None = None) -> list[list[Any]]:
    """Load one sheet of *path* as a 2D list of raw cell values.

    No header row is inferred; the grid starts at the first cell of the used
    range. Empty cells become ``None``. For CSV input *sheet_name* is ignored.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not supported, the sheet does not exist, or the
        CSV cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
        try:
            df = read_excel(
                path,
                sheet_name=sheet_name if sheet_name else 0,
                header=None,
                engine="openpyxl",
            )
        except ValueError as exc:
            raise ValueError(f"Could not read sheet {sheet_name!r} from {path}: {exc}") from exc
        logger.debug("Loaded %s rows x %s columns from %s[%s]", *df.shape, path, sheet_name)
        return _frame_to_grid(df)

    if suffix == ".csv":
        last_exc: Exception | None = None
        for encoding in ("utf-8-sig", "utf-8", "latin-1"):
            try:
                df = pd.read_csv(
                    path,
                    header=None,
                    encoding=encoding,
                    encoding_errors="strict",
                    skip_blank_lines=False,
                )
            except pd.errors.EmptyDataError:
                return []
            except (UnicodeDecodeError, pd.errors.ParserError) as exc:
                last_exc = exc
                continue
            logger.debug("Loaded %s rows x %s columns from %s", *df.shape, path)
            return _frame_to_grid(df)
        raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc

    raise ValueError(f"Unsupported file type: {suffix!r}. Use .xlsx or .csv")


class SheetReader(Protocol):
    """Anything that can hand back a named sheet as a grid."""

    def read(self, sheet_name: str) -> Grid: ...


class WorkbookReader:
    """Sheet reader backed by a local workbook or CSV export."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self, sheet_name: str) -> Grid:
        return load_grid(self.path, sheet_name)


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_text(path: Path, text: str) -> Path:
    """Write *text* to *path* via a temp file so readers never see a partial file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)
    return path


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    return write_text(path, payload)
