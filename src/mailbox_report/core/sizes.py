"""Mailbox size parsing and formatting.

Exchange reports sizes as a display string with the exact byte count
embedded, e.g. ``"5.5 GB (5,911,495,680 bytes)"``.
"""

import re

__all__ = ["SizeParseError", "format_byte_size", "parse_byte_size"]

KB = 1024
MB = KB * 1024
GB = MB * 1024
TB = GB * 1024

# Thousands separator depends on locale: "," "." "'" or a (non-breaking) space
_BYTES_PATTERN = re.compile(r"\(\s*(\d[\d,.'\s]*?)\s*bytes\s*\)", re.IGNORECASE)


class SizeParseError(ValueError):
    """Raised when a size string has no parenthesized byte count."""


def parse_byte_size(value: str) -> int:
    """Extract the exact byte count from an Exchange size string.

    Args:
        value: Size string such as "1.00 GB (1,073,741,824 bytes)"

    Returns:
        Byte count as a non-negative integer

    Raises:
        SizeParseError: If no "(N bytes)" marker is present
    """
    if not isinstance(value, str):
        raise SizeParseError(f"Expected size string, got {type(value).__name__}")

    match = _BYTES_PATTERN.search(value)
    if not match:
        raise SizeParseError(f"No byte count found in size string: {value!r}")

    digits = re.sub(r"\D", "", match.group(1))
    return int(digits)


def format_byte_size(num_bytes: int) -> str:
    """Format a byte count as MB, GB or TB (1024-based, two decimals)."""
    if num_bytes >= TB:
        return f"{num_bytes / TB:.2f} TB"
    if num_bytes >= GB:
        return f"{num_bytes / GB:.2f} GB"
    return f"{num_bytes / MB:.2f} MB"
