"""Exchange Online mailbox size reporting."""

__version__ = "0.1.0"
