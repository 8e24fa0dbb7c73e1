"""
Shared datetime helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pandas as pd


DATE_FORMAT = "%Y-%m-%d"


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def age_in_days(modified: datetime, now: datetime | None = None) -> float:
    """Days elapsed between ``modified`` and ``now``."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    return (now - ensure_utc(modified)).total_seconds() / 86400


def epoch_to_date(values: pd.Series) -> pd.Series:
    """Convert unix epoch seconds to ``YYYY-MM-DD`` strings; unparseable values become null."""
    seconds = pd.to_numeric(values, errors="coerce")
    dates = pd.to_datetime(seconds, unit="s", errors="coerce", utc=True)
    return dates.dt.strftime(DATE_FORMAT).astype(object).where(dates.notna(), None)


def timestamp_to_date(values: pd.Series) -> pd.Series:
    """Truncate ISO-like timestamps to ``YYYY-MM-DD`` strings; unparseable values become null."""
    dates = pd.to_datetime(values, errors="coerce", utc=True, format="mixed")
    return dates.dt.strftime(DATE_FORMAT).astype(object).where(dates.notna(), None)
