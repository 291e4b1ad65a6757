"""Aggregation logic for glucose readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from models.records import Reading
from services.derived import is_high, is_low


@dataclass
class AggregationSummary:
    """Computed statistics for a set of readings.

    ``average`` keeps full precision; rounding is a presentation concern.
    An empty set yields an all-zero summary.
    """

    count: int = 0
    average: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0
    low_count: int = 0
    normal_count: int = 0
    high_count: int = 0


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, readings: Iterable[Reading]) -> AggregationSummary:
        summary = AggregationSummary()
        total = 0.0

        for reading in readings:
            value = reading.value
            if summary.count == 0 or value < summary.minimum:
                summary.minimum = value
            if summary.count == 0 or value > summary.maximum:
                summary.maximum = value
            summary.count += 1
            total += value

            if is_low(value):
                summary.low_count += 1
            elif is_high(value):
                summary.high_count += 1
            else:
                summary.normal_count += 1

        if summary.count:
            summary.average = total / summary.count

        return summary
