"""
Vouchers -- pure voucher-number and voucher-date rendering.

Responsibility:
    Renders ``prefix || zero_pad(sequence, number_length)``, formats
    voucher dates in the three supported layouts, and extracts the numeric
    suffix of an existing voucher code (used by max-suffix numbering).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

import re
from datetime import date

from bullion_kernel.exceptions import InvalidEnumError, InvalidIdentifierError

DATE_FORMATS: dict[str, str] = {
    "DD/MM/YYYY": "%d/%m/%Y",
    "MM/DD/YYYY": "%m/%d/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
}

DEFAULT_DATE_FORMAT = "YYYY-MM-DD"

_PREFIX_RE = re.compile(r"^[A-Z0-9]{1,5}$")


def validate_prefix(prefix: str | None) -> str:
    """Normalize a voucher prefix: 1-5 uppercase alphanumeric characters."""
    normalized = (prefix or "").strip().upper()
    if not _PREFIX_RE.match(normalized):
        raise InvalidIdentifierError(
            "prefix", prefix or "", "must be 1-5 uppercase alphanumeric characters"
        )
    return normalized


def validate_date_format(date_format: str | None) -> str:
    if date_format is None:
        return DEFAULT_DATE_FORMAT
    if date_format not in DATE_FORMATS:
        raise InvalidEnumError("date_format", date_format, list(DATE_FORMATS))
    return date_format


def render_voucher_number(prefix: str, sequence: int, number_length: int) -> str:
    """
    Example:
        >>> render_voucher_number("SAL", 7, 4)
        'SAL0007'
    """
    return f"{prefix}{str(sequence).zfill(number_length)}"


def format_voucher_date(value: date, date_format: str | None) -> str:
    """Render ``value`` in one of DATE_FORMATS; unknown formats fall back to ISO."""
    pattern = DATE_FORMATS.get(date_format or DEFAULT_DATE_FORMAT)
    if pattern is None:
        pattern = DATE_FORMATS[DEFAULT_DATE_FORMAT]
    return value.strftime(pattern)


def voucher_suffix(voucher_code: str, prefix: str) -> int | None:
    """
    Numeric suffix of ``voucher_code`` after ``prefix`` (case-insensitive).

    Returns None when the code does not start with the prefix or the rest
    is not all digits.
    """
    if not voucher_code or not voucher_code.upper().startswith(prefix.upper()):
        return None
    rest = voucher_code[len(prefix):]
    if not rest.isdigit():
        return None
    return int(rest)
