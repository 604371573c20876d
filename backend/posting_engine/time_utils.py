from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Wall clock in UTC, naive. Only used when a caller supplies no business date."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_trans_date(value=None) -> datetime:
    """
    Canonical transaction timestamp (UTC-naive) for a posting.

    Accepts None (now), a datetime (aware values are converted to UTC), a date
    (midnight) or an ISO-8601 string, "Z" suffix allowed. Backdated values are
    kept as given.
    """
    if value is None:
        return utcnow()
    if isinstance(value, datetime):
        return _as_utc_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return _as_utc_naive(datetime.fromisoformat(text))
    raise ValueError("invalid transaction date")


def parse_expiry_date(value) -> Optional[date]:
    """Expiry lots are keyed by calendar date; None means 'no lot tracking'."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def period_parts(dt: datetime) -> tuple[int, int]:
    """(year, month) period markers stamped on every billing row."""
    return dt.year, dt.month


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for to_dict(): whole seconds, UTC, trailing 'Z'. Naive values count as UTC."""
    if dt is None:
        return None
    return _as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
