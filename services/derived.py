"""Presentation-only fields computed from a reading at response time."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from models.records import HIGH_THRESHOLD, LOW_THRESHOLD, MGDL_PER_MMOL, Reading


@dataclass(frozen=True)
class DerivedView:
    value_mmol: float
    time_ago: str
    is_low: bool
    is_high: bool
    is_in_range: bool


def round_half_up(value: float, places: int = 0) -> float:
    """Round half away from zero; ``round()`` would round half to even."""
    exponent = Decimal(1).scaleb(-places)
    quantized = Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return float(quantized)


def to_mmol(value: float) -> float:
    return round_half_up(value / MGDL_PER_MMOL, 1)


def is_low(value: float) -> bool:
    return value < LOW_THRESHOLD


def is_high(value: float) -> bool:
    return value > HIGH_THRESHOLD


def is_in_range(value: float) -> bool:
    return LOW_THRESHOLD <= value <= HIGH_THRESHOLD


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    current = now or datetime.now(timezone.utc)
    minutes = int((current - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if minutes < 1440:
        return _plural(minutes // 60, "hour")
    return _plural(minutes // 1440, "day")


def derive(reading: Reading, now: Optional[datetime] = None) -> DerivedView:
    value = reading.value
    return DerivedView(
        value_mmol=to_mmol(value),
        time_ago=time_ago(reading.timestamp, now),
        is_low=is_low(value),
        is_high=is_high(value),
        is_in_range=is_in_range(value),
    )
