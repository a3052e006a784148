"""Report composer — per-area analyses, executive summary, HTML body."""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from kpi_digest import VIEWS
from kpi_digest.llm import ChatClient
from kpi_digest.models import Record
from kpi_digest.pipeline import kpi_labels, records_for_area, records_to_csv, unique_areas
from kpi_digest.prompts import build_area_prompt, build_executive_prompt, build_system_prompt
from kpi_digest.utils import today_utc

logger = logging.getLogger(__name__)

DETAILED_TITLE = "Detailed Analysis by Area"
SECTION_SEPARATOR = "\n\n-----\n\n"

# ── Style constants ──────────────────────────────────────────────

BODY_STYLE = "font-family: Arial, sans-serif; line-height: 1.6; color: #333333;"
TITLE_STYLE = "color: #2F5496; margin-bottom: 16px;"
SUMMARY_STYLE = (
    "background-color: #F5F8FC; "
    "border-left: 4px solid #2F5496; "
    "padding: 12px 16px;"
)
FOOTER_STYLE = "margin-top: 24px; color: #808080; font-size: 0.9em;"


@dataclass
class DigestReport:
    """Everything the digest run produced, ready to be mailed or saved."""

    area_analyses: dict[str, str] = field(default_factory=dict)
    executive_summary: str = ""
    detailed_text: str = ""
    attachment_name: str = ""
    html: str = ""
    records: list[Record] = field(default_factory=list)


# ── Helpers ──────────────────────────────────────────────────────


def build_detailed_text(analyses: Sequence[str]) -> str:
    """Concatenate per-area analyses into the text attachment."""
    return f"{DETAILED_TITLE}\n-----\n\n" + SECTION_SEPARATOR.join(analyses)


def attachment_name(day: date) -> str:
    return f"{day.isoformat()}_analysis.txt"


def _text_to_html(text: str) -> str:
    return "<br>\n".join(html.escape(line) for line in text.splitlines())


def render_html(summary: str, *, subject: str, sheet_url: str = "") -> str:
    """Render the email body around the executive *summary*."""
    link = ""
    if sheet_url:
        link = (
            f'<p>Source data: <a href="{html.escape(sheet_url, quote=True)}">'
            "KPI overview sheet</a></p>"
        )
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        '<head><meta charset="UTF-8"></head>\n'
        f'<body style="{BODY_STYLE}">\n'
        f'<h2 style="{TITLE_STYLE}">{html.escape(subject)}</h2>\n'
        f'<div style="{SUMMARY_STYLE}">\n{_text_to_html(summary)}\n</div>\n'
        f"{link}\n"
        f'<p style="{FOOTER_STYLE}">The detailed analysis per area is attached '
        "as a text file.</p>\n"
        "</body>\n"
        "</html>\n"
    )


# ── Composition ──────────────────────────────────────────────────


def analyze_areas(
    records: Sequence[Record], client: ChatClient, system_prompt: str
) -> dict[str, str]:
    """Run one LLM call per area, in the order areas first appear."""
    areas = unique_areas(records)
    logger.info("Writing analysis for %d areas: %s", len(areas), ", ".join(areas))

    analyses: dict[str, str] = {}
    for area in areas:
        logger.info("Analyzing area %s", area)
        csv_text = records_to_csv(records_for_area(records, area))
        analyses[area] = client.complete(build_area_prompt(csv_text), system_prompt)
    logger.info("Wrote analysis for all areas")
    return analyses


def compose_report(
    records: Sequence[Record],
    client: ChatClient,
    *,
    views: Mapping[str, str] | None = None,
    subject: str = "",
    sheet_url: str = "",
    today: date | None = None,
) -> DigestReport:
    """Run the per-area pass, then the executive pass, and assemble the report.

    Calls are strictly sequential; the executive prompt is built from every
    per-area answer.
    """
    if views is None:
        views = VIEWS
    day = today if today is not None else today_utc()
    records = list(records)

    system_prompt = build_system_prompt(kpi_labels(records), views)
    analyses = analyze_areas(records, client, system_prompt)

    detailed = build_detailed_text(list(analyses.values()))
    summary = client.complete(build_executive_prompt(list(analyses.values())), system_prompt)
    logger.info("Wrote executive summary")

    return DigestReport(
        area_analyses=analyses,
        executive_summary=summary,
        detailed_text=detailed,
        attachment_name=attachment_name(day),
        html=render_html(summary, subject=subject, sheet_url=sheet_url),
        records=records,
    )
