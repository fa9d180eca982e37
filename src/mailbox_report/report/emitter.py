"""Write the mailbox detail export and summary document."""

from __future__ import annotations

import csv
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING

from mailbox_report.core.sizes import format_byte_size
from mailbox_report.report.models import MailboxType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mailbox_report.report.models import ReportRow, ReportSummary

logger = logging.getLogger(__name__)

DETAIL_COLUMNS = [
    "DisplayName",
    "EmailAddress",
    "MailboxType",
    "TotalItemSize",
    "ItemCount",
    "LastLogonTime",
    "ArchiveEnabled",
    "Enabled",
    "Database",
]

FILENAME_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
DISPLAY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# BOM lets Excel detect UTF-8 display names
CSV_ENCODING = "utf-8-sig"


def get_output_dir(base_dir: Path | str) -> Path:
    """Get or create the report output directory.

    Args:
        base_dir: Directory for report files

    Returns:
        Path to the output directory
    """
    output_path = Path(base_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path


def _create_file(output_dir: Path, stem: str, extension: str, **open_kwargs) -> tuple[Path, IO]:
    """Create a new file, adding _1, _2, ... to the stem if the name is taken."""
    counter = 0
    while True:
        name = f"{stem}_{counter}{extension}" if counter else f"{stem}{extension}"
        filepath = output_dir / name
        try:
            return filepath, filepath.open("x", **open_kwargs)
        except FileExistsError:
            counter += 1


def _format_logon(value: datetime | None) -> str:
    if value is None:
        return ""
    # Aware values are reported in UTC, naive values are already UTC
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(DISPLAY_TIMESTAMP_FORMAT)


def _format_bool(value: bool | None) -> str:
    if value is None:
        return ""
    return "True" if value else "False"


def _row_to_csv(row: ReportRow) -> list[str | int]:
    return [
        row.display_name,
        row.email_address,
        row.mailbox_type,
        row.total_item_size,
        row.item_count,
        _format_logon(row.last_logon_time),
        _format_bool(row.archive_enabled),
        _format_bool(row.enabled),
        row.database or "",
    ]


def write_detail_export(
    rows: Iterable[ReportRow],
    destination: Path | str,
    timestamp: datetime | None = None,
) -> Path:
    """Write one CSV line per mailbox.

    Args:
        rows: Report rows in output order
        destination: Directory to write into (created if missing)
        timestamp: Generation time used in the filename. Defaults to now.

    Returns:
        Path to the created CSV file. An existing file from a run in the
        same second is kept and the new name gets a _1, _2, ... suffix.

    Raises:
        OSError: If the directory or file cannot be written
    """
    timestamp = timestamp or datetime.now()
    output_dir = get_output_dir(destination)
    filepath, handle = _create_file(
        output_dir,
        f"MailboxReport_{timestamp.strftime(FILENAME_TIMESTAMP_FORMAT)}",
        ".csv",
        newline="",
        encoding=CSV_ENCODING,
    )

    count = 0
    with handle as f:
        writer = csv.writer(f)
        writer.writerow(DETAIL_COLUMNS)
        for row in rows:
            writer.writerow(_row_to_csv(row))
            count += 1

    logger.info(f"Exported {count} mailboxes to {filepath}")
    return filepath


def render_summary(summary: ReportSummary, timestamp: datetime) -> str:
    """Render the summary document text."""
    title = "Exchange Online Mailbox Report Summary"
    lines = [
        title,
        "=" * len(title),
        f"Generated: {timestamp.strftime(DISPLAY_TIMESTAMP_FORMAT)}",
        "",
        f"Total Mailboxes: {summary.total_mailboxes}",
        f"User Mailboxes: {summary.user_mailboxes}",
        f"Other Mailboxes: {summary.other_mailboxes}",
        f"Total Size: {format_byte_size(summary.total_size_bytes)}",
        f"Average Size per Mailbox: {format_byte_size(round(summary.average_size_bytes))}",
        f"User Mailbox Ratio: {summary.user_mailbox_ratio:.2f}%",
    ]

    breakdown = [
        f"  {mailbox_type.value}: {summary.type_counts[mailbox_type]}"
        for mailbox_type in MailboxType
        if summary.type_counts.get(mailbox_type)
    ]
    if breakdown:
        lines += ["", "Mailboxes by Type:", *breakdown]
    return "\n".join(lines) + "\n"


def write_summary_document(
    summary: ReportSummary,
    destination: Path | str,
    timestamp: datetime | None = None,
) -> Path:
    """Write the human-readable summary document.

    Args:
        summary: Finalized report summary
        destination: Directory to write into (created if missing)
        timestamp: Generation time for the filename and header. Defaults to now.

    Returns:
        Path to the created text file (numbered like the detail export
        when the name is already taken)

    Raises:
        OSError: If the directory or file cannot be written
    """
    timestamp = timestamp or datetime.now()
    output_dir = get_output_dir(destination)
    filepath, handle = _create_file(
        output_dir,
        f"MailboxSummary_{timestamp.strftime(FILENAME_TIMESTAMP_FORMAT)}",
        ".txt",
        encoding="utf-8",
    )

    with handle as f:
        f.write(render_summary(summary, timestamp))

    logger.info(f"Wrote summary to {filepath}")
    return filepath
