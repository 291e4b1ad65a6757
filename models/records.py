"""Domain models shared across services."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

MIN_VALUE = 0.0
MAX_VALUE = 1000.0
LOW_THRESHOLD = 70.0
HIGH_THRESHOLD = 180.0
MGDL_PER_MMOL = 18.018
MAX_DEVICE_LENGTH = 100


class Trend(str, Enum):
    rising = "Rising"
    falling = "Falling"
    stable = "Stable"
    unknown = "Unknown"


class Noise(str, Enum):
    clean = "Clean"
    light = "Light"
    medium = "Medium"
    heavy = "Heavy"


@dataclass(frozen=True, slots=True)
class Calibration:
    slope: Optional[float] = None
    intercept: Optional[float] = None
    scale: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ReadingMetadata:
    """Sensor sidecar plus request provenance.

    ``source_ip`` and ``user_agent`` are kept for auditing only and never
    leave the service.
    """

    raw_value: Optional[float] = None
    battery_level: Optional[int] = None
    signal_strength: Optional[int] = None
    calibration: Optional[Calibration] = None
    source_ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReadingDraft:
    """Validated but not yet normalized inbound reading."""

    value: float
    timestamp: Optional[datetime] = None
    trend: Optional[Trend] = None
    noise: Optional[Noise] = None
    device: Optional[str] = None
    owner_id: Optional[str] = None
    raw_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Reading:
    """A single glucose measurement ready for storage."""

    value: float
    timestamp: datetime
    trend: Trend
    noise: Noise
    device: str
    owner_id: Optional[str]
    metadata: ReadingMetadata


@dataclass(frozen=True, slots=True)
class StoredReading(Reading):
    """A reading after insertion; ``sequence`` records insertion order."""

    id: str
    sequence: int


@dataclass(frozen=True, slots=True)
class ReadingFilter:
    owner_id: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def matches(self, reading: Reading) -> bool:
        if self.owner_id is not None and reading.owner_id != self.owner_id:
            return False
        if self.since is not None and reading.timestamp < self.since:
            return False
        if self.until is not None and reading.timestamp > self.until:
            return False
        return True


def new_identifier() -> str:
    return str(uuid.uuid4())


def canonical_identifier(value: str) -> str:
    """Return the canonical form of ``value``; raises ``ValueError`` if malformed."""
    return str(uuid.UUID(value.strip()))


def is_identifier(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        canonical_identifier(value)
    except ValueError:
        return False
    return True
