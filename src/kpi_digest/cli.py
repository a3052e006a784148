"""CLI entry point for kpi-digest."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import NoReturn

import requests
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable
from rich.text import Text

from kpi_digest import RECORD_COLUMNS, __version__
from kpi_digest.config import DEFAULT_SHEET_NAME, DigestConfig
from kpi_digest.digest import run_digest
from kpi_digest.io import WorkbookReader, load_grid, write_json, write_text
from kpi_digest.llm import CannedChatClient, ChatClient, LLMResponseError, OpenAIChatClient
from kpi_digest.mail import MailDeliveryError, Mailer, OutboxMailer, SmtpMailer
from kpi_digest.models import Record, RunManifest
from kpi_digest.pipeline import SheetShapeError, extract_records, records_to_csv, unique_areas
from kpi_digest.report import DigestReport
from kpi_digest.utils import sha256_file, utcnow_iso

app = typer.Typer(
    name="kdigest",
    help="kpi-digest — Turn a KPI overview sheet into an LLM-written email digest.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

_PREVIEW_ROWS = 20


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"kpi-digest v{__version__}")
        raise typer.Exit()


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # Keep HTTP connection chatter out of the run log.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    sheet_name: str,
    created_at: str,
    *,
    records: int = 0,
    areas: int = 0,
    sent: bool = False,
    status: str = "success",
    error_message: str = "",
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        version=__version__,
        input_path=str(input_file.resolve()),
        sheet_name=sheet_name,
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        records=records,
        areas=areas,
        sha256=sha256,
        sent=sent,
        status=status,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    input_file: Path,
    sheet_name: str,
    created_at: str,
    message: str,
    *,
    code: int,
) -> NoReturn:
    manifest_path = _write_manifest(
        out_dir, input_file, sheet_name, created_at, status="failed", error_message=message
    )
    _err(message)
    console.print(f"  Manifest -> {manifest_path}")
    raise typer.Exit(code=code)


def _write_report_artifacts(out_dir: Path, report: DigestReport) -> list[Path]:
    return [
        write_text(out_dir / "records.csv", records_to_csv(report.records)),
        write_text(out_dir / report.attachment_name, report.detailed_text),
        write_text(out_dir / "summary.html", report.html),
    ]


def _records_table(records: list[Record], limit: int = _PREVIEW_ROWS) -> RichTable:
    tbl = RichTable(title="Extracted Records", show_lines=False)
    for name in RECORD_COLUMNS:
        tbl.add_column(name, justify="right" if name == "Value" else "left")
    for record in records[:limit]:
        tbl.add_row(record.area, record.kpi, record.direction, record.view, record.value)
    if len(records) > limit:
        tbl.caption = f"{len(records) - limit} more rows not shown"
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """kpi-digest CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX (or CSV export) holding the KPI overview.",
        exists=True, readable=True,
    ),
    sheet: str | None = typer.Option(
        None, "--sheet", "-s",
        help=f"Sheet to read (default: {DEFAULT_SHEET_NAME}).",
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for records, analyses and manifest.",
    ),
    to: list[str] | None = typer.Option(
        None, "--to",
        help="Recipient address; repeat for several. Overrides KPI_DIGEST_RECIPIENTS.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run",
        help="Write the email to the output directory instead of sending it.",
    ),
    offline: bool = typer.Option(
        False, "--offline",
        help="Do not call the LLM; every analysis is a canned placeholder.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log prompts and answers.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Extract KPI records, ask the LLM for analyses and email the digest."""
    load_dotenv()
    _configure_logging(verbose=verbose, quiet=quiet)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    sheet_name = sheet or DEFAULT_SHEET_NAME
    out_dir.mkdir(parents=True, exist_ok=True)

    try:
        config = DigestConfig.from_env(sheet_name=sheet, recipients=to or None)
        client: ChatClient = (
            CannedChatClient() if offline else OpenAIChatClient.from_config(config)
        )
        if not dry_run and not config.recipients:
            raise ValueError("No recipients configured (use --to or KPI_DIGEST_RECIPIENTS)")
    except (TypeError, ValueError) as exc:
        _fail(out_dir, input_file, sheet_name, created_at, str(exc), code=2)

    mailer: Mailer = OutboxMailer(out_dir) if dry_run else SmtpMailer.from_config(config)

    if not quiet:
        console.print(Panel(
            f"[bold]kpi-digest[/bold] v{__version__}\n"
            f"Input:  {input_file} (sheet: {config.sheet_name})\nOutput: {out_dir}",
            title="Digest Start", border_style="blue",
        ))
        if offline:
            console.print("  [yellow]![/yellow] Offline: LLM answers are placeholders")
        if dry_run:
            console.print("  [yellow]![/yellow] Dry run: email is written, not sent")

    echo("[blue]>[/blue] Reading sheet, analyzing areas, sending digest …")
    try:
        report = run_digest(
            config,
            reader=WorkbookReader(input_file),
            client=client,
            mailer=mailer,
        )
        echo(f"  {len(report.records)} records across {len(report.area_analyses)} areas")
        for path in _write_report_artifacts(out_dir, report):
            echo(f"  Wrote -> {path}")

        manifest_path = _write_manifest(
            out_dir,
            input_file,
            config.sheet_name,
            created_at,
            records=len(report.records),
            areas=len(report.area_analyses),
            sent=not dry_run,
        )
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            console.print(Panel(
                Text(report.executive_summary),
                title="Digest Complete" + (" (dry run)" if dry_run else ""),
                border_style="green",
            ))
    except typer.Exit:
        raise
    except (LLMResponseError, requests.RequestException, MailDeliveryError) as exc:
        _fail(out_dir, input_file, config.sheet_name, created_at,
              f"External service failed: {exc}", code=1)
    except SheetShapeError as exc:
        _fail(out_dir, input_file, config.sheet_name, created_at,
              f"Sheet layout error: {exc}", code=2)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _fail(out_dir, input_file, config.sheet_name, created_at, str(exc), code=2)
    except Exception as exc:
        _fail(out_dir, input_file, config.sheet_name, created_at,
              f"Unexpected internal error: {exc}", code=1)


# ── extract command ──────────────────────────────────────────────


@app.command()
def extract(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX (or CSV export) holding the KPI overview.",
        exists=True, readable=True,
    ),
    sheet: str = typer.Option(
        DEFAULT_SHEET_NAME, "--sheet", "-s",
        help="Sheet to read.",
    ),
    out: Path = typer.Option(
        Path("output") / "records.csv", "--out",
        help="Where to write the extracted records as CSV.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress the record preview.",
    ),
) -> None:
    """Extract records from the overview sheet without calling the LLM.

    Exit 0 = OK, exit 2 = unreadable input or unexpected sheet layout.
    """
    try:
        grid = load_grid(input_file, sheet)
        records = extract_records(grid)
    except SheetShapeError as exc:
        _err(f"Sheet layout error: {exc}")
        raise typer.Exit(code=2)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    csv_path = write_text(out, records_to_csv(records))
    if not quiet:
        console.print(_records_table(records))
        console.print(
            f"  {len(records)} records across {len(unique_areas(records))} areas"
        )
    console.print(f"  Records -> {csv_path}")
