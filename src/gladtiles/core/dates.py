"""Conversions between calendar dates and YYDDD alert dates."""

from __future__ import annotations

import datetime as dt

from gladtiles.core.codec import BASE_YEAR, DAYS_PER_YEAR


def julian_to_date(julian: int) -> dt.date:
    """Convert a YYDDD value into a calendar date.

    Day 0 of a year is mapped to January 1st, so ``15000`` and ``15001``
    both mean 2015-01-01.
    """
    year, day = divmod(int(julian), 1000)
    day = max(day, 1)
    return dt.date(2000 + year, 1, 1) + dt.timedelta(days=day - 1)


def date_to_julian(value: dt.date) -> int:
    """Convert a calendar date into YYDDD form."""
    return (value.year - 2000) * 1000 + value.timetuple().tm_yday


def parse_julian(text: str) -> int:
    """Parse either a YYDDD integer or an ISO ``YYYY-MM-DD`` date.

    Raises:
        ValueError: If the text is neither.
    """
    text = text.strip()
    if text.isdigit():
        return int(text)
    return date_to_julian(dt.date.fromisoformat(text))


def slider_to_julian(value: float) -> int:
    """Map a date-slider position to YYDDD.

    The slider spans two years: 0..1 covers the first encoded year and
    1..2 the second.
    """
    if value <= 1:
        return int(BASE_YEAR * 1000 + value * DAYS_PER_YEAR)
    return int((BASE_YEAR + 1) * 1000 + (value - 1) * DAYS_PER_YEAR)
