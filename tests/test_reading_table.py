"""Unit tests for the in-memory reading table."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from datastore.reading_table import ReadingTable
from errors import DuplicateError, StoreError
from models.records import Calibration, Noise, Reading, ReadingFilter, ReadingMetadata, Trend

BASE = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
OWNER_A = "0b8f5a0e-7a43-4c0e-9d0d-2f6d1c9b1a01"
OWNER_B = "a3c1e9b2-55d4-4f1a-8c3e-6e2b7d9f0a02"


def _reading(
    value: float,
    minutes: int = 0,
    owner_id: str | None = None,
    metadata: ReadingMetadata | None = None,
) -> Reading:
    return Reading(
        value=value,
        timestamp=BASE + timedelta(minutes=minutes),
        trend=Trend.stable,
        noise=Noise.clean,
        device="xDrip+",
        owner_id=owner_id,
        metadata=metadata or ReadingMetadata(),
    )


def test_insert_assigns_id_and_sequence() -> None:
    table = ReadingTable(name="readings")

    first = table.insert(_reading(100))
    second = table.insert(_reading(110))

    assert first.id and second.id and first.id != second.id
    assert (first.sequence, second.sequence) == (1, 2)
    assert first.value == 100
    assert len(table) == 2


def test_find_returns_newest_first_bounded_by_limit() -> None:
    table = ReadingTable(name="readings")
    for minutes, value in enumerate((90, 95, 100)):
        table.insert(_reading(value, minutes=minutes))

    everything = table.find(ReadingFilter(), limit=10)
    top_two = table.find(ReadingFilter(), limit=2)

    assert [item.value for item in everything] == [100, 95, 90]
    assert [item.value for item in top_two] == [100, 95]


def test_equal_timestamps_keep_insertion_order() -> None:
    table = ReadingTable(name="readings")
    table.insert(_reading(80, minutes=0))
    first = table.insert(_reading(120, minutes=5))
    second = table.insert(_reading(130, minutes=5))

    found = table.find(ReadingFilter(), limit=10)

    assert [item.id for item in found[:2]] == [first.id, second.id]
    assert found[2].value == 80


def test_out_of_order_inserts_are_sorted_by_timestamp() -> None:
    table = ReadingTable(name="readings")
    table.insert(_reading(100, minutes=10))
    table.insert(_reading(90, minutes=0))
    table.insert(_reading(110, minutes=20))

    assert [item.value for item in table.find(ReadingFilter())] == [110, 100, 90]


def test_find_filters_by_owner_and_time_range() -> None:
    table = ReadingTable(name="readings")
    table.insert(_reading(100, minutes=0, owner_id=OWNER_A))
    table.insert(_reading(110, minutes=10, owner_id=OWNER_A))
    table.insert(_reading(120, minutes=20, owner_id=OWNER_A))
    table.insert(_reading(200, minutes=10, owner_id=OWNER_B))

    owned = table.find(ReadingFilter(owner_id=OWNER_A))
    windowed = table.find(
        ReadingFilter(
            owner_id=OWNER_A,
            since=BASE + timedelta(minutes=10),
            until=BASE + timedelta(minutes=20),
        )
    )
    unowned_window = table.find(ReadingFilter(until=BASE + timedelta(minutes=10)))

    assert [item.value for item in owned] == [120, 110, 100]
    assert [item.value for item in windowed] == [120, 110]
    assert sorted(item.value for item in unowned_window) == [100, 110, 200]
    assert table.find(ReadingFilter(owner_id="3f0a55a4-9a7c-4f52-9d59-1d3f86e2b603")) == []


@pytest.mark.parametrize("limit", [0, 101])
def test_find_rejects_limit_outside_bounds(limit: int) -> None:
    table = ReadingTable(name="readings")

    with pytest.raises(ValueError):
        table.find(ReadingFilter(), limit=limit)


def test_find_one_returns_latest_or_none() -> None:
    table = ReadingTable(name="readings")
    assert table.find_one(ReadingFilter()) is None

    table.insert(_reading(100, minutes=0))
    table.insert(_reading(150, minutes=30))

    latest = table.find_one(ReadingFilter())
    assert latest is not None
    assert latest.value == 150


def test_aggregate_scans_past_page_limit() -> None:
    table = ReadingTable(name="readings")
    for minutes in range(150):
        table.insert(_reading(100, minutes=minutes))

    summary = table.aggregate(ReadingFilter())

    assert summary.count == 150
    assert summary.average == 100


def test_aggregate_with_no_matches_is_all_zero() -> None:
    table = ReadingTable(name="readings")
    table.insert(_reading(100, owner_id=OWNER_A))

    summary = table.aggregate(ReadingFilter(owner_id=OWNER_B))

    assert (summary.count, summary.average, summary.minimum, summary.maximum) == (0, 0, 0, 0)


def test_duplicate_identifier_is_rejected() -> None:
    table = ReadingTable(name="readings", id_factory=lambda: "fixed-id")
    table.insert(_reading(100))

    with pytest.raises(DuplicateError):
        table.insert(_reading(110))

    assert len(table) == 1


def test_insert_persists_to_disk_and_reloads(tmp_path) -> None:
    path = tmp_path / "readings.json"
    ids = (f"id-{n}" for n in count(1))
    table = ReadingTable(name="readings", persistence_path=path, id_factory=lambda: next(ids))
    metadata = ReadingMetadata(
        battery_level=77,
        calibration=Calibration(slope=1.1),
        source_ip="198.51.100.2",
    )
    stored = table.insert(_reading(123.4, minutes=3, owner_id=OWNER_A, metadata=metadata))

    payload = json.loads(path.read_text())
    assert payload[0]["id"] == "id-1"
    assert payload[0]["trend"] == "Stable"

    reloaded = ReadingTable(name="readings", persistence_path=path)
    loaded = reloaded.find_one(ReadingFilter(owner_id=OWNER_A))
    assert loaded == stored

    follow_up = reloaded.insert(_reading(90, minutes=4))
    assert follow_up.sequence == 2


def test_unreadable_persistence_file_is_ignored(tmp_path) -> None:
    path = tmp_path / "readings.json"
    path.write_text("{not json")

    table = ReadingTable(name="readings", persistence_path=path)

    assert len(table) == 0


def test_persistence_failure_raises_store_error_and_rolls_back(tmp_path) -> None:
    path = tmp_path / "occupied"
    path.mkdir()
    table = ReadingTable(name="readings", persistence_path=path)

    with pytest.raises(StoreError):
        table.insert(_reading(100))

    assert len(table) == 0
    assert table.find(ReadingFilter()) == []


def test_failed_write_keeps_previous_file_intact(tmp_path, monkeypatch) -> None:
    path = tmp_path / "readings.json"
    table = ReadingTable(name="readings", persistence_path=path)
    table.insert(_reading(100, minutes=5))
    before = path.read_text()

    def broken_replace(src, dst) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("datastore.reading_table.os.replace", broken_replace)

    with pytest.raises(StoreError):
        table.insert(_reading(110, minutes=1))

    assert path.read_text() == before
    assert list(tmp_path.iterdir()) == [path]
    assert len(table) == 1
