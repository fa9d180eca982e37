"""Mailbox report pipeline: normalize, aggregate, emit."""

from mailbox_report.report.aggregator import InvalidStateError, MailboxAggregator
from mailbox_report.report.emitter import write_detail_export, write_summary_document
from mailbox_report.report.models import (
    MailboxRecord,
    MailboxStatistics,
    MailboxType,
    ReportRow,
    ReportSummary,
)
from mailbox_report.report.normalize import normalize_mailbox
from mailbox_report.report.progress import (
    LoggingProgressReporter,
    NullProgressReporter,
    ProgressReporter,
)
from mailbox_report.report.runner import (
    FetchError,
    MailboxService,
    ReportAbortedError,
    ReportOutcome,
    generate_report,
)

__all__ = [
    "FetchError",
    "InvalidStateError",
    "LoggingProgressReporter",
    "MailboxAggregator",
    "MailboxRecord",
    "MailboxService",
    "MailboxStatistics",
    "MailboxType",
    "NullProgressReporter",
    "ProgressReporter",
    "ReportAbortedError",
    "ReportOutcome",
    "ReportRow",
    "ReportSummary",
    "generate_report",
    "normalize_mailbox",
    "write_detail_export",
    "write_summary_document",
]
