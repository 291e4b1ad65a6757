"""Time-in-range statistics over a lookback window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from datastore.base import ReadingStore
from models.records import ReadingFilter
from services.derived import round_half_up


@dataclass(frozen=True)
class TimeInRange:
    low: int
    normal: int
    high: int


@dataclass(frozen=True)
class StatsPeriod:
    hours: float
    since: datetime
    until: datetime


@dataclass(frozen=True)
class StatsSummary:
    count: int
    average: float
    minimum: float
    maximum: float
    low_count: int
    normal_count: int
    high_count: int
    time_in_range: TimeInRange
    period: StatsPeriod


def percentage(part: int, count: int) -> int:
    """Share of ``count`` as a whole percent; each bucket is rounded on its own."""
    if count == 0:
        return 0
    return int(round_half_up(part / count * 100))


class StatisticsService:

    def __init__(self, store: ReadingStore) -> None:
        self.store = store

    def summarize(
        self,
        hours: float,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> StatsSummary:
        until = now or datetime.now(timezone.utc)
        since = until - timedelta(hours=hours)
        aggregate = self.store.aggregate(
            ReadingFilter(owner_id=owner_id, since=since, until=until)
        )
        count = aggregate.count
        return StatsSummary(
            count=count,
            average=round_half_up(aggregate.average, 1),
            minimum=aggregate.minimum,
            maximum=aggregate.maximum,
            low_count=aggregate.low_count,
            normal_count=aggregate.normal_count,
            high_count=aggregate.high_count,
            time_in_range=TimeInRange(
                low=percentage(aggregate.low_count, count),
                normal=percentage(aggregate.normal_count, count),
                high=percentage(aggregate.high_count, count),
            ),
            period=StatsPeriod(hours=hours, since=since, until=until),
        )
