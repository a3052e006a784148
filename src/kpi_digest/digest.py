"""End-to-end digest run over injected collaborators."""

from __future__ import annotations

import logging
from datetime import date

from kpi_digest.config import DigestConfig
from kpi_digest.io import SheetReader
from kpi_digest.llm import ChatClient
from kpi_digest.mail import Mailer, build_message
from kpi_digest.pipeline import extract_records
from kpi_digest.report import DigestReport, compose_report

logger = logging.getLogger(__name__)


def run_digest(
    config: DigestConfig,
    *,
    reader: SheetReader,
    client: ChatClient,
    mailer: Mailer,
    today: date | None = None,
) -> DigestReport:
    """Read the sheet, extract records, run both LLM passes and send the email.

    Any failure along the way propagates; nothing is sent unless every LLM
    call succeeded.
    """
    grid = reader.read(config.sheet_name)
    records = extract_records(grid, config.layout)
    logger.info("Extracted %d records from sheet %r", len(records), config.sheet_name)

    report = compose_report(
        records,
        client,
        views=config.views,
        subject=config.subject,
        sheet_url=config.sheet_url,
        today=today,
    )

    message = build_message(
        report,
        sender=config.sender,
        recipients=config.recipients,
        subject=config.subject,
    )
    mailer.send(message)
    return report
