from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

# Dates arrive from the floor terminals as DD-MM-YYYY; the ERP expects ISO dates.
DISPLAY_DATE_FORMAT = "%d-%m-%Y"
ERP_DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_display_date(value: str) -> date:
    """Parse a DD-MM-YYYY string. Raises ValueError on anything else."""
    return datetime.strptime(value.strip(), DISPLAY_DATE_FORMAT).date()


def to_erp_date(value: str) -> str:
    """DD-MM-YYYY -> YYYY-MM-DD."""
    return parse_display_date(value).strftime(ERP_DATE_FORMAT)


def parse_erp_date(value) -> Optional[date]:
    """
    Best-effort parse of a date the ERP sends back.

    The GR endpoint has been seen returning both "2025-03-14" and "20250314".
    Returns None when the value is empty or unrecognised.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    for fmt in (ERP_DATE_FORMAT, "%Y%m%d", DISPLAY_DATE_FORMAT):
        try:
            return datetime.strptime(s[:10] if fmt == ERP_DATE_FORMAT else s, fmt).date()
        except ValueError:
            continue
    return None


def to_iso_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(ERP_DATE_FORMAT)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
