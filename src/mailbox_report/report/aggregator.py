"""Running totals over report rows."""

from mailbox_report.report.models import MailboxType, ReportRow, ReportSummary

__all__ = ["InvalidStateError", "MailboxAggregator"]


class InvalidStateError(RuntimeError):
    """Raised when rows are added to a finalized aggregator."""


class MailboxAggregator:
    """Fold report rows into a ReportSummary.

    Rows are kept in the order they are added. Every row is counted,
    including disabled mailboxes and unknown types.
    """

    def __init__(self, standard_user_type: str = MailboxType.USER.value) -> None:
        """Initialize an empty aggregator.

        Args:
            standard_user_type: Type tag counted as a user mailbox
        """
        self.standard_user_type = standard_user_type
        self.total_mailboxes = 0
        self.user_mailboxes = 0
        self.total_size_bytes = 0
        self.type_counts: dict[MailboxType, int] = {}
        self._rows: list[ReportRow] = []
        self._summary: ReportSummary | None = None

    @property
    def is_finalized(self) -> bool:
        """True once finalize() has been called."""
        return self._summary is not None

    def add_row(self, row: ReportRow) -> None:
        """Count a row toward the running totals.

        Raises:
            InvalidStateError: If the aggregator was already finalized
        """
        if self._summary is not None:
            raise InvalidStateError("Cannot add rows after finalize()")

        self.total_mailboxes += 1
        if row.mailbox_type == self.standard_user_type:
            self.user_mailboxes += 1
        self.total_size_bytes += row.size_bytes
        mailbox_type = MailboxType.from_tag(row.mailbox_type)
        self.type_counts[mailbox_type] = self.type_counts.get(mailbox_type, 0) + 1
        self._rows.append(row)

    def finalize(self) -> ReportSummary:
        """Stop accepting rows and return the summary.

        Repeated calls return the same summary.
        """
        if self._summary is None:
            self._summary = ReportSummary(
                total_mailboxes=self.total_mailboxes,
                user_mailboxes=self.user_mailboxes,
                other_mailboxes=self.total_mailboxes - self.user_mailboxes,
                total_size_bytes=self.total_size_bytes,
                rows=tuple(self._rows),
                type_counts=dict(self.type_counts),
            )
        return self._summary
