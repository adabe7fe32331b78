from __future__ import annotations
from datetime import date, datetime, timezone

# Movement timestamps are stored as ISO-8601 UTC text at second precision
# ("2024-05-01T09:30:00Z") so lexical order equals chronological order.


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(moment: datetime | None) -> datetime:
    """Return ``moment`` as an aware UTC datetime (now if None, naive taken as UTC)."""
    if moment is None:
        return utcnow()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def iso_timestamp(moment: datetime | None = None) -> str:
    return to_utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")


def compact_date(moment: datetime | None = None) -> str:
    """UTC date as YYYYMMDD, used as the cosmetic prefix of TXN-/R- numbers."""
    return to_utc(moment).strftime("%Y%m%d")


def range_bounds(date_from: date | None, date_to: date | None) -> tuple[str | None, str]:
    """
    Convert an inclusive [from, to] day range into timestamp bounds.
    ``date_to`` defaults to today and is stretched to the end of that day;
    a missing ``date_from`` means "from the beginning" (None).
    """
    if isinstance(date_from, datetime):
        date_from = to_utc(date_from).date()
    if isinstance(date_to, datetime):
        date_to = to_utc(date_to).date()
    end_day = date_to or utcnow().date()
    upper = f"{end_day.isoformat()}T23:59:59Z"
    lower = f"{date_from.isoformat()}T00:00:00Z" if date_from else None
    return lower, upper
