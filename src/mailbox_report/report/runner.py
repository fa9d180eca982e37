"""Single pass over all mailboxes producing the detail export and summary."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol

from mailbox_report.report.aggregator import MailboxAggregator
from mailbox_report.report.emitter import write_detail_export, write_summary_document
from mailbox_report.report.models import (
    MailboxRecord,
    MailboxStatistics,
    MailboxType,
    ReportSummary,
)
from mailbox_report.report.normalize import normalize_mailbox
from mailbox_report.report.progress import NullProgressReporter, ProgressReporter

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when mailboxes or mailbox statistics cannot be retrieved.

    ``systemic`` marks failures that will repeat for every mailbox
    (permissions, authentication, missing cmdlets).
    """

    def __init__(self, message: str, identity: str | None = None, systemic: bool = False):
        super().__init__(message)
        self.identity = identity
        self.systemic = systemic


class ReportAbortedError(Exception):
    """Raised when a run stops before any artifact is written."""


class MailboxService(Protocol):
    """Source of mailboxes and their statistics."""

    async def list_mailboxes(self) -> list[MailboxRecord]: ...

    async def get_mailbox_statistics(self, identity: str) -> MailboxStatistics: ...


@dataclass
class ReportOutcome:
    """Result of a report run."""

    summary: ReportSummary | None = None
    detail_path: Path | None = None
    summary_path: Path | None = None
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """True when both artifacts were written."""
        return self.detail_path is not None and self.summary_path is not None


async def generate_report(
    service: MailboxService,
    output_dir: Path | str,
    *,
    progress: ProgressReporter | None = None,
    abort_on_fetch_error: bool = False,
    standard_user_type: str = MailboxType.USER.value,
    timestamp: datetime | None = None,
) -> ReportOutcome:
    """Fetch statistics for every mailbox and write both report artifacts.

    Mailboxes are processed one at a time in listing order. A failed
    statistics fetch skips that mailbox with a warning, unless it is the
    first mailbox and the failure is systemic, or ``abort_on_fetch_error``
    is set; then the run is aborted.

    Args:
        service: Mailbox listing and statistics source
        output_dir: Directory for the CSV and summary files
        progress: Observer called once per mailbox and once on completion
        abort_on_fetch_error: Abort on any statistics fetch failure
        standard_user_type: Type tag counted as a user mailbox
        timestamp: Generation time for filenames. Defaults to now.

    Returns:
        ReportOutcome with the summary, written paths, skips and errors

    Raises:
        ReportAbortedError: If listing fails or a fetch failure aborts the run
    """
    progress = progress or NullProgressReporter()
    timestamp = timestamp or datetime.now()

    logger.info("Fetching mailboxes...")
    try:
        mailboxes = await service.list_mailboxes()
    except FetchError as e:
        raise ReportAbortedError(f"Failed to list mailboxes: {e}") from e

    total = len(mailboxes)
    logger.info(f"Found {total} mailboxes")

    aggregator = MailboxAggregator(standard_user_type=standard_user_type)
    outcome = ReportOutcome()

    for index, record in enumerate(mailboxes, start=1):
        try:
            stats = await service.get_mailbox_statistics(record.identity)
        except FetchError as e:
            if abort_on_fetch_error or (index == 1 and e.systemic):
                raise ReportAbortedError(
                    f"Failed to get statistics for {record.identity}: {e}"
                ) from e
            message = f"Skipped {record.identity}: {e}"
            logger.warning(message)
            outcome.skipped.append(record.identity)
            outcome.warnings.append(message)
        else:
            aggregator.add_row(normalize_mailbox(record, stats, outcome.warnings))
        progress.update(index, total, record.identity)

    progress.complete(total)
    summary = aggregator.finalize()
    outcome.summary = summary

    try:
        outcome.detail_path = write_detail_export(summary.rows, output_dir, timestamp)
    except OSError as e:
        logger.error(f"Failed to write detail export: {e}")
        outcome.errors.append(f"Detail export: {e}")

    try:
        outcome.summary_path = write_summary_document(summary, output_dir, timestamp)
    except OSError as e:
        logger.error(f"Failed to write summary document: {e}")
        outcome.errors.append(f"Summary document: {e}")

    return outcome
