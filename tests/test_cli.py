"""CLI integration smoke tests for kpi-digest."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import requests
from typer.testing import CliRunner

import kpi_digest.cli as cli_mod
from kpi_digest import __version__
from kpi_digest.cli import app

runner = CliRunner()


def _run_offline(overview_xlsx: Path, out_dir: Path, *extra: str) -> Any:
    return runner.invoke(
        app,
        [
            "run",
            "--input", str(overview_xlsx),
            "--out-dir", str(out_dir),
            "--offline",
            "--dry-run",
            "--quiet",
            *extra,
        ],
    )


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"kpi-digest v{__version__}" in result.stdout


def test_run_offline_dry_run_writes_artifacts(overview_xlsx: Path, tmp_path: Path) -> None:
    out_dir = tmp_path / "out"

    result = _run_offline(overview_xlsx, out_dir)

    assert result.exit_code == 0, result.stdout
    records_csv = (out_dir / "records.csv").read_text(encoding="utf-8")
    assert len(records_csv.splitlines()) == 9
    assert (out_dir / "summary.html").exists()
    assert (out_dir / "monthly_kpi_report.eml").exists()
    assert len(list(out_dir.glob("*_analysis.txt"))) == 1

    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "success"
    assert manifest["records"] == 8
    assert manifest["areas"] == 2
    assert manifest["sent"] is False
    assert manifest["sheet_name"] == "analysis_overview"


def test_run_nonquiet_shows_panels(overview_xlsx: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "run", "--input", str(overview_xlsx), "--out-dir", str(tmp_path / "o"),
            "--offline", "--dry-run",
        ],
    )

    assert result.exit_code == 0
    assert "Digest Start" in result.stdout
    assert "Digest Complete" in result.stdout
    assert "8 records across 2 areas" in result.stdout


def test_run_header_only_sheet_exits_2_with_failed_manifest(
    tmp_path: Path, workbook_factory: Callable[..., Path], overview_rows: list[list[object]]
) -> None:
    path = workbook_factory(tmp_path / "header_only.xlsx", overview_rows[:3])
    out_dir = tmp_path / "out"

    result = _run_offline(path, out_dir)

    assert result.exit_code == 2
    assert "Only header found" in result.stdout
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "failed"
    assert "Only header found" in manifest["error_message"]
    assert not (out_dir / "records.csv").exists()


def test_run_misaligned_columns_exits_2(
    tmp_path: Path, workbook_factory: Callable[..., Path], overview_rows: list[list[object]]
) -> None:
    path = workbook_factory(tmp_path / "bad.xlsx", [row[:4] for row in overview_rows])

    result = _run_offline(path, tmp_path / "out")

    assert result.exit_code == 2
    assert "Invalid number of columns" in result.stdout


def test_run_missing_sheet_exits_2(overview_xlsx: Path, tmp_path: Path) -> None:
    result = _run_offline(overview_xlsx, tmp_path / "out", "--sheet", "nope")

    assert result.exit_code == 2


def test_run_without_api_key_exits_2(overview_xlsx: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["run", "--input", str(overview_xlsx), "--out-dir", str(tmp_path / "out"), "--dry-run", "-q"],
    )

    assert result.exit_code == 2
    assert "API key" in result.stdout


def test_run_without_recipients_exits_2_unless_dry_run(
    overview_xlsx: Path, tmp_path: Path
) -> None:
    result = runner.invoke(
        app,
        ["run", "--input", str(overview_xlsx), "--out-dir", str(tmp_path / "out"), "--offline", "-q"],
    )

    assert result.exit_code == 2
    assert "No recipients" in result.stdout


def test_run_llm_http_failure_exits_1(
    monkeypatch: pytest.MonkeyPatch, overview_xlsx: Path, tmp_path: Path
) -> None:
    def _boom(self: object, user_message: str, system_message: str) -> str:
        raise requests.ConnectionError("connection refused")

    monkeypatch.setenv("KPI_DIGEST_API_KEY", "sk-test")
    monkeypatch.setattr(cli_mod.OpenAIChatClient, "complete", _boom)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        ["run", "--input", str(overview_xlsx), "--out-dir", str(out_dir), "--dry-run", "-q"],
    )

    assert result.exit_code == 1
    assert "External service failed" in result.stdout
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "failed"
    assert not (out_dir / "monthly_kpi_report.eml").exists()


def test_run_sends_through_smtp_with_recipients(
    monkeypatch: pytest.MonkeyPatch, overview_xlsx: Path, tmp_path: Path
) -> None:
    sent: list[Any] = []

    def _fake_send(self: object, message: Any) -> None:
        sent.append(message)

    monkeypatch.setattr(cli_mod.SmtpMailer, "send", _fake_send)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "--input", str(overview_xlsx), "--out-dir", str(out_dir),
            "--offline", "--to", "ops@example.com", "--to", "cto@example.com", "-q",
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert len(sent) == 1
    assert sent[0]["To"] == "ops@example.com, cto@example.com"
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["sent"] is True


def test_extract_writes_csv_and_shows_table(overview_xlsx: Path, tmp_path: Path) -> None:
    out = tmp_path / "records.csv"

    result = runner.invoke(app, ["extract", "--input", str(overview_xlsx), "--out", str(out)])

    assert result.exit_code == 0
    assert "Extracted Records" in result.stdout
    assert "8 records across 2 areas" in result.stdout
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Area,KPI,Direction,View,Value"
    assert lines[1] == "Berlin,nOrders,more is better,variation,12%"


def test_extract_header_only_exits_2(
    tmp_path: Path, workbook_factory: Callable[..., Path], overview_rows: list[list[object]]
) -> None:
    path = workbook_factory(tmp_path / "header_only.xlsx", overview_rows[:3])

    result = runner.invoke(
        app, ["extract", "--input", str(path), "--out", str(tmp_path / "r.csv"), "-q"]
    )

    assert result.exit_code == 2
    assert "Sheet layout error" in result.stdout
    assert not (tmp_path / "r.csv").exists()


def test_run_smtp_connection_refused_exits_1(
    monkeypatch: pytest.MonkeyPatch, overview_xlsx: Path, tmp_path: Path
) -> None:
    def _refuse(*_args: Any, **_kwargs: Any) -> None:
        raise ConnectionRefusedError(111, "Connection refused")

    monkeypatch.setattr("kpi_digest.mail.smtplib.SMTP", _refuse)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "run", "--input", str(overview_xlsx), "--out-dir", str(out_dir),
            "--offline", "--to", "ops@example.com", "-q",
        ],
    )

    assert result.exit_code == 1
    assert "External service failed" in result.stdout
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "failed"
    assert manifest["sent"] is False


def test_run_unexpected_error_exits_1_with_failed_manifest(
    monkeypatch: pytest.MonkeyPatch, overview_xlsx: Path, tmp_path: Path
) -> None:
    def _boom(*_args: Any, **_kwargs: Any) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(cli_mod, "run_digest", _boom)
    out_dir = tmp_path / "out"

    result = _run_offline(overview_xlsx, out_dir)

    assert result.exit_code == 1
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "failed"
    assert "Unexpected internal error: boom" in manifest["error_message"]


def test_run_artifact_write_failure_exits_1(
    monkeypatch: pytest.MonkeyPatch, overview_xlsx: Path, tmp_path: Path
) -> None:
    def _broken(*_args: Any, **_kwargs: Any) -> list[Path]:
        raise KeyError("attachment_name")

    monkeypatch.setattr(cli_mod, "_write_report_artifacts", _broken)
    out_dir = tmp_path / "out"

    result = _run_offline(overview_xlsx, out_dir)

    assert result.exit_code == 1
    manifest = json.loads((out_dir / "run_manifest.json").read_text())
    assert manifest["status"] == "failed"
    assert manifest["error_message"].startswith("Unexpected internal error")


@pytest.mark.parametrize(
    ("verbose", "quiet", "level"),
    [
        (False, False, logging.INFO),
        (True, False, logging.DEBUG),
        (False, True, logging.WARNING),
    ],
)
def test_configure_logging_levels(verbose: bool, quiet: bool, level: int) -> None:
    cli_mod._configure_logging(verbose=verbose, quiet=quiet)

    assert logging.getLogger().level == level
    assert logging.getLogger("urllib3").level == logging.WARNING
