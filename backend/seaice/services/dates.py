"""Observation date parsing and date-list helpers.

Dates travel through the system as ISO ``YYYY-MM-DD`` strings, which sort
lexicographically in calendar order. This module validates them, enumerates
inclusive UTC day ranges, and picks dates out of an available list the way
the viewer does when a user selects or plays back dates.

Example:
    >>> from seaice.services import dates
    >>> dates.daily_range("2026-02-01", "2026-02-03")
    ['2026-02-01', '2026-02-02', '2026-02-03']
    >>> dates.select_date(["2026-02-01", "2026-02-05"], "2026-02-04")
    '2026-02-01'
"""

from __future__ import annotations

import bisect
import datetime
import re
from typing import TYPE_CHECKING

from seaice.core import errors

if TYPE_CHECKING:
    from collections.abc import Sequence

    from seaice.catalog import models

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> datetime.date:
    """Parse a ``YYYY-MM-DD`` string into a date.

    Args:
        value: Candidate date string.

    Returns:
        The parsed calendar date.

    Raises:
        InvalidDate: If the string does not have the ``YYYY-MM-DD`` shape or
            names a day that does not exist.
    """
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise errors.InvalidDate(value)
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as exc:
        raise errors.InvalidDate(value) from exc


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.UTC).date()


def daily_range(
    start: datetime.date | str,
    end: datetime.date | str,
) -> list[str]:
    """Enumerate every calendar day from ``start`` to ``end`` inclusive.

    Raises:
        InvalidTimeRange: If ``start`` lies after ``end``.
    """
    first = parse_iso_date(start) if isinstance(start, str) else start
    last = parse_iso_date(end) if isinstance(end, str) else end
    if first > last:
        raise errors.InvalidTimeRange(
            f"Range start {first.isoformat()} is after end {last.isoformat()}"
        )
    span = (last - first).days
    return [
        (first + datetime.timedelta(days=offset)).isoformat()
        for offset in range(span + 1)
    ]


def select_date(available: Sequence[str], requested: str) -> str | None:
    """Clamp a requested date onto a sorted list of available dates.

    Returns the latest available date not after ``requested``; when every
    available date is later, the earliest one. None if nothing is available.
    """
    if not available:
        return None
    parse_iso_date(requested)
    index = bisect.bisect_right(available, requested)
    return available[index - 1] if index else available[0]


def next_date(available: Sequence[str], current: str) -> str | None:
    """Return the date following ``current``, wrapping around for playback."""
    if not available:
        return None
    index = bisect.bisect_right(available, current)
    return available[index % len(available)]


def fallback_dates(dataset: models.DatasetCatalog) -> list[str]:
    """The locally-known snapshot dates, used when discovery fails."""
    return sorted({snapshot.date for snapshot in dataset.snapshots})
