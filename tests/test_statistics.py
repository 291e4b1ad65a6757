"""Unit tests for window statistics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from datastore.reading_table import ReadingTable
from models.records import Noise, Reading, ReadingMetadata, Trend
from services.statistics import StatisticsService, percentage

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
OWNER = "0b8f5a0e-7a43-4c0e-9d0d-2f6d1c9b1a01"


def _insert(table: ReadingTable, value: float, hours_ago: float, owner_id: str | None = None) -> None:
    table.insert(
        Reading(
            value=value,
            timestamp=NOW - timedelta(hours=hours_ago),
            trend=Trend.unknown,
            noise=Noise.clean,
            device="xDrip+",
            owner_id=owner_id,
            metadata=ReadingMetadata(),
        )
    )


def test_percentage_rounds_each_bucket_independently() -> None:
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(1, 8) == 13
    assert percentage(0, 0) == 0


def test_empty_window_yields_zero_summary() -> None:
    service = StatisticsService(ReadingTable(name="readings"))

    summary = service.summarize(hours=24, now=NOW)

    assert summary.count == 0
    assert (summary.average, summary.minimum, summary.maximum) == (0, 0, 0)
    assert (summary.time_in_range.low, summary.time_in_range.normal, summary.time_in_range.high) == (0, 0, 0)


def test_buckets_and_percentages() -> None:
    table = ReadingTable(name="readings")
    for value in (50, 100, 190):
        _insert(table, value, hours_ago=1)

    summary = StatisticsService(table).summarize(hours=24, now=NOW)

    assert summary.count == 3
    assert (summary.low_count, summary.normal_count, summary.high_count) == (1, 1, 1)
    assert (summary.time_in_range.low, summary.time_in_range.normal, summary.time_in_range.high) == (33, 33, 33)
    assert summary.average == 113.3
    assert summary.minimum == 50
    assert summary.maximum == 190


def test_window_excludes_older_readings_and_reports_period() -> None:
    table = ReadingTable(name="readings")
    _insert(table, 100, hours_ago=2)
    _insert(table, 300, hours_ago=30)

    summary = StatisticsService(table).summarize(hours=6, now=NOW)

    assert summary.count == 1
    assert summary.maximum == 100
    assert summary.period.hours == 6
    assert summary.period.until == NOW
    assert summary.period.since == NOW - timedelta(hours=6)


def test_owner_filter_applies() -> None:
    table = ReadingTable(name="readings")
    _insert(table, 60, hours_ago=1, owner_id=OWNER)
    _insert(table, 200, hours_ago=1)

    summary = StatisticsService(table).summarize(hours=24, owner_id=OWNER, now=NOW)

    assert summary.count == 1
    assert summary.time_in_range.low == 100
