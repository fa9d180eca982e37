"""Progress reporting for the per-mailbox pass."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Observer notified once per processed mailbox."""

    def update(self, current: int, total: int, label: str = "") -> None:
        """Called with a 1-based index after each mailbox."""
        ...

    def complete(self, total: int) -> None:
        """Called once after the last mailbox."""
        ...


class NullProgressReporter:
    """Progress reporter that does nothing."""

    def update(self, current: int, total: int, label: str = "") -> None:
        pass

    def complete(self, total: int) -> None:
        pass


class LoggingProgressReporter:
    """Log progress lines like "[3/120] user@contoso.com"."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def update(self, current: int, total: int, label: str = "") -> None:
        suffix = f" {label}" if label else ""
        logger.log(self.level, f"[{current}/{total}]{suffix}")

    def complete(self, total: int) -> None:
        logger.log(self.level, f"Processed {total} mailboxes (100%)")
