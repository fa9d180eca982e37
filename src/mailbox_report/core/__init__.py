"""Core utilities for mailbox reporting."""

from mailbox_report.core.config import (
    ExchangeCredentials,
    ReportSettings,
    get_exchange_credentials,
    get_settings,
)
from mailbox_report.core.sizes import SizeParseError, format_byte_size, parse_byte_size

__all__ = [
    "ExchangeCredentials",
    "ReportSettings",
    "SizeParseError",
    "format_byte_size",
    "get_exchange_credentials",
    "get_settings",
    "parse_byte_size",
]
