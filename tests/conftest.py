"""Shared pytest fixtures."""

from datetime import datetime

import pytest

from mailbox_report.report.models import MailboxRecord, MailboxStatistics


class FakeMailboxService:
    """In-memory MailboxService.

    ``statistics`` maps identity to MailboxStatistics, or to an exception
    that get_mailbox_statistics raises for that mailbox.
    """

    def __init__(self, mailboxes, statistics, list_error=None):
        self.mailboxes = mailboxes
        self.statistics = statistics
        self.list_error = list_error
        self.calls: list[str] = []

    async def list_mailboxes(self):
        if self.list_error:
            raise self.list_error
        return list(self.mailboxes)

    async def get_mailbox_statistics(self, identity):
        self.calls.append(identity)
        result = self.statistics[identity]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingProgressReporter:
    """Progress reporter that records every call."""

    def __init__(self):
        self.updates: list[tuple[int, int, str]] = []
        self.completed: list[int] = []

    def update(self, current, total, label=""):
        self.updates.append((current, total, label))

    def complete(self, total):
        self.completed.append(total)


@pytest.fixture
def sample_mailboxes():
    """Two user mailboxes and one shared mailbox."""
    return [
        MailboxRecord(
            identity="alice@contoso.com",
            display_name="Alice Admin",
            primary_smtp_address="alice@contoso.com",
            mailbox_type="UserMailbox",
            archive_enabled=True,
        ),
        MailboxRecord(
            identity="bob@contoso.com",
            display_name="Bob Builder",
            primary_smtp_address="bob@contoso.com",
            mailbox_type="UserMailbox",
            archive_enabled=False,
        ),
        MailboxRecord(
            identity="info@contoso.com",
            display_name="Info",
            primary_smtp_address="info@contoso.com",
            mailbox_type="SharedMailbox",
        ),
    ]


@pytest.fixture
def sample_statistics():
    """Statistics keyed by identity for sample_mailboxes."""
    return {
        "alice@contoso.com": MailboxStatistics(
            total_item_size="1.00 GB (1,073,741,824 bytes)",
            item_count=1200,
            last_logon_time=datetime(2026, 10, 1, 8, 30, 0),
        ),
        "bob@contoso.com": MailboxStatistics(
            total_item_size="2.00 GB (2,147,483,648 bytes)",
            item_count=3400,
            last_logon_time=datetime(2026, 10, 16, 17, 45, 12),
        ),
        "info@contoso.com": MailboxStatistics(
            total_item_size="500.00 MB (524,288,000 bytes)",
            item_count=87,
            last_logon_time=None,
        ),
    }


@pytest.fixture
def fake_service(sample_mailboxes, sample_statistics):
    """FakeMailboxService over the sample mailboxes."""
    return FakeMailboxService(sample_mailboxes, sample_statistics)


@pytest.fixture
def fake_service_class():
    """The FakeMailboxService class, for tests that build their own data."""
    return FakeMailboxService


@pytest.fixture
def recording_progress():
    """Progress reporter that records calls."""
    return RecordingProgressReporter()


@pytest.fixture
def report_timestamp():
    """Fixed generation time for deterministic filenames."""
    return datetime(2026, 10, 17, 9, 5, 3)


@pytest.fixture
def mock_exchange_env(monkeypatch):
    """Set mock Exchange environment variables for testing."""
    monkeypatch.setenv("EXCHANGE_TENANT_ID", "test-tenant-id")
    monkeypatch.setenv("EXCHANGE_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("EXCHANGE_ORGANIZATION", "contoso.onmicrosoft.com")
    monkeypatch.setenv("EXCHANGE_CERTIFICATE_THUMBPRINT", "ABC123")
    monkeypatch.delenv("EXCHANGE_CERTIFICATE_PATH", raising=False)
    monkeypatch.delenv("EXCHANGE_CERTIFICATE_PASSWORD", raising=False)
