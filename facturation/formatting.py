"""
Shared formatting helpers.

The CII serializer and the PDF renderer both format amounts through
``fmt_amount`` so the two artifacts always show the same cents.
"""
from __future__ import annotations

from datetime import datetime, timezone

from facturation.errors import DateFormatError


def fmt_amount(value: float) -> str:
    """Format monetary amount: 2 decimals, no thousands separator."""
    return f"{value:.2f}"


def fmt_percent(value: float) -> str:
    return f"{value:.2f} %"


def _is_iso_date_layout(value: str) -> bool:
    if len(value) != 10 or value[4] != "-" or value[7] != "-":
        return False
    return (value[:4] + value[5:7] + value[8:]).isdigit()


def format_date_for_facturx(value: str, field: str = "date") -> str:
    """Convert ``YYYY-MM-DD`` to ``YYYYMMDD`` (format 102)."""
    if not value or not _is_iso_date_layout(value):
        raise DateFormatError(f"Invalid date format for {field}: {value!r} (expected YYYY-MM-DD)", field)
    return value.replace("-", "")


def format_date_display(value: str) -> str:
    """Convert ``YYYY-MM-DD`` to ``DD/MM/YYYY``; anything else is shown as-is."""
    if value and _is_iso_date_layout(value):
        year, month, day = value.split("-")
        return f"{day}/{month}/{year}"
    return value


def truncate(text: str, limit: int, keep: int) -> str:
    """Cut ``text`` to ``keep`` characters plus an ellipsis when longer than ``limit``."""
    if len(text) > limit:
        return text[:keep] + "..."
    return text


def utc(now: datetime | None = None) -> datetime:
    """Return ``now`` as an aware UTC datetime (current time if None)."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def fmt_xmp_timestamp(now: datetime) -> str:
    return utc(now).strftime("%Y-%m-%dT%H:%M:%S+00:00")


def fmt_pdf_date(now: datetime) -> str:
    """PDF date string (ISO 32000 7.9.4), always in UTC."""
    return utc(now).strftime("D:%Y%m%d%H%M%S+00'00'")
