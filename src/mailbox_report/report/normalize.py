"""Map raw mailbox records and statistics into report rows."""

import logging
import re
from datetime import UTC, datetime

from dateutil import parser as dateparser

from mailbox_report.core.sizes import SizeParseError, parse_byte_size
from mailbox_report.report.models import MailboxRecord, MailboxStatistics, ReportRow

logger = logging.getLogger(__name__)

# Windows PowerShell 5.1 serializes DateTime as "/Date(1700000000000)/"
_MS_DATE_PATTERN = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_last_logon(value: str | datetime | None) -> datetime | None:
    """Parse a LastLogonTime value from ConvertTo-Json output.

    Args:
        value: ISO-8601 string (PowerShell 7), /Date(ms)/ string (PowerShell 5.1),
            an existing datetime, or None/empty when the mailbox never logged on

    Returns:
        Timezone-aware UTC datetime, or None if absent or unparseable.
        Values without an offset are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    value = str(value).strip()
    if not value:
        return None

    match = _MS_DATE_PATTERN.match(value)
    if match:
        return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=UTC)

    try:
        return _as_utc(dateparser.parse(value))
    except (ValueError, OverflowError):
        logger.debug(f"Could not parse last logon time: {value!r}")
        return None


def normalize_mailbox(
    record: MailboxRecord,
    stats: MailboxStatistics,
    warnings: list[str] | None = None,
) -> ReportRow:
    """Join a mailbox record with its statistics.

    An unparseable size string is reported as 0 bytes so the mailbox still
    appears in the export.

    Args:
        record: Mailbox as listed by Exchange
        stats: Statistics fetched for that mailbox
        warnings: If given, a message is appended for an unparseable size

    Returns:
        ReportRow for the mailbox
    """
    try:
        size_bytes = parse_byte_size(stats.total_item_size)
    except SizeParseError as e:
        message = f"Treating size of {record.identity} as 0 bytes: {e}"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)
        size_bytes = 0

    return ReportRow(
        display_name=record.display_name,
        email_address=record.primary_smtp_address,
        mailbox_type=record.mailbox_type,
        total_item_size=stats.total_item_size,
        size_bytes=size_bytes,
        item_count=stats.item_count,
        last_logon_time=stats.last_logon_time,
        enabled=record.enabled,
        archive_enabled=record.archive_enabled,
        database=record.database,
    )
