"""Data models for mailbox records, statistics and report rows."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

__all__ = [
    "MailboxRecord",
    "MailboxStatistics",
    "MailboxType",
    "ReportRow",
    "ReportSummary",
]


class MailboxType(Enum):
    """Known RecipientTypeDetails values for mailboxes."""

    USER = "UserMailbox"
    SHARED = "SharedMailbox"
    ROOM = "RoomMailbox"
    EQUIPMENT = "EquipmentMailbox"
    OTHER = "Other"

    @classmethod
    def from_tag(cls, tag: str) -> "MailboxType":
        """Classify a raw type tag, falling back to OTHER."""
        for member in cls:
            if member.value == tag:
                return member
        return cls.OTHER


@dataclass
class MailboxRecord:
    """Represents a mailbox as listed by Exchange Online."""

    identity: str  # UserPrincipalName
    display_name: str
    primary_smtp_address: str
    mailbox_type: str  # RecipientTypeDetails, passed through as-is
    enabled: bool = True
    archive_enabled: bool | None = None
    database: str | None = None


@dataclass
class MailboxStatistics:
    """Usage statistics for a single mailbox."""

    total_item_size: str  # e.g. "5.5 GB (5,911,495,680 bytes)"
    item_count: int = 0
    last_logon_time: datetime | None = None


@dataclass(frozen=True)
class ReportRow:
    """One mailbox joined with its statistics."""

    display_name: str
    email_address: str
    mailbox_type: str
    total_item_size: str
    size_bytes: int
    item_count: int
    last_logon_time: datetime | None = None
    enabled: bool = True
    archive_enabled: bool | None = None
    database: str | None = None


@dataclass(frozen=True)
class ReportSummary:
    """Aggregate totals over all report rows."""

    total_mailboxes: int
    user_mailboxes: int
    other_mailboxes: int
    total_size_bytes: int
    rows: tuple[ReportRow, ...] = field(default_factory=tuple)
    type_counts: dict[MailboxType, int] = field(default_factory=dict)

    @property
    def average_size_bytes(self) -> float:
        """Mean mailbox size, 0 when there are no mailboxes."""
        if not self.total_mailboxes:
            return 0.0
        return self.total_size_bytes / self.total_mailboxes

    @property
    def user_mailbox_ratio(self) -> float:
        """Share of user mailboxes as a percentage, 0 when there are no mailboxes."""
        if not self.total_mailboxes:
            return 0.0
        return self.user_mailboxes / self.total_mailboxes * 100
