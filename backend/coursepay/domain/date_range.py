"""Reporting windows for balance and earnings queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

_RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}


@dataclass(frozen=True)
class DateRange:
    """Inclusive ``[start, end]`` window; either bound may be open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    @classmethod
    def from_range_param(cls, value: Optional[str], *, now: Optional[datetime] = None) -> "DateRange":
        """
        Map the ``range`` query parameter (``all``, ``7d``, ``30d``, ``90d``, ``1y``).

        Raises:
            ValueError: for any other value
        """
        normalized = (value or "all").strip().lower()
        if normalized == "all":
            return cls()
        days = _RANGE_DAYS.get(normalized)
        if days is None:
            raise ValueError(f"Unsupported range '{value}'")
        current = now or datetime.now(timezone.utc)
        return cls(start=current - timedelta(days=days), end=None)

    @classmethod
    def from_dates(cls, start_date: Optional[date], end_date: Optional[date]) -> "DateRange":
        """Whole-day window; the end date is included up to its last microsecond."""
        start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
        end = datetime.combine(end_date, time.max, tzinfo=timezone.utc) if end_date else None
        if start and end and start > end:
            raise ValueError("start_date must be on or before end_date")
        return cls(start=start, end=end)
