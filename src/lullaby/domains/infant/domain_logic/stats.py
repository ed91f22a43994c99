"""Small statistics helpers shared by the local analyzers."""

from __future__ import annotations

import statistics
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone, tzinfo

from lullaby.domains.infant.records import ActivityRecord, DateRange, local_time

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hour_variance(hours: Sequence[float]) -> float:
    """Population variance of hour-of-day values (plain, not circular).

    Fewer than two values carry no spread information and give 0.0.
    """
    if len(hours) < 2:
        return 0.0
    return statistics.pvariance([float(h) for h in hours])


def mean_or_zero(values: Sequence[float]) -> float:
    return statistics.fmean(values) if values else 0.0


def start_hours(records: Iterable[ActivityRecord], tz: tzinfo | None) -> list[int]:
    return [local_time(r.start_time, tz).hour for r in records]


def within(records: Iterable[ActivityRecord], date_range: DateRange | None) -> list[ActivityRecord]:
    """Drop records whose start falls outside ``date_range`` (if given)."""
    if date_range is None:
        return list(records)
    return [r for r in records if date_range.contains(r.start_time)]
