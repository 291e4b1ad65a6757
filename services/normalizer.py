"""Turn a validated draft into a store-ready reading."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from models.records import (
    Calibration,
    Noise,
    Reading,
    ReadingDraft,
    ReadingMetadata,
    Trend,
)
from services.derived import round_half_up
from services.validator import parse_number

logger = logging.getLogger(__name__)

MAX_SOURCE_IP_LENGTH = 45
MAX_USER_AGENT_LENGTH = 500


@dataclass(frozen=True)
class Provenance:
    """Transport details captured at ingestion; stored but never returned."""

    source_ip: Optional[str] = None
    user_agent: Optional[str] = None


def _truncate(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return value[:length]


def _bounded_number(
    raw: Mapping[str, Any],
    name: str,
    minimum: float,
    maximum: Optional[float] = None,
) -> Optional[float]:
    if name not in raw:
        return None
    try:
        number = parse_number(raw[name])
    except ValueError:
        logger.debug("Dropping non-numeric metadata field %s", name)
        return None
    if number < minimum or (maximum is not None and number > maximum):
        logger.debug("Dropping out-of-range metadata field %s", name, extra={"value": number})
        return None
    return number


def _calibration(raw: Any) -> Optional[Calibration]:
    if not isinstance(raw, Mapping):
        return None
    values = {}
    for name in ("slope", "intercept", "scale"):
        if raw.get(name) is None:
            continue
        try:
            values[name] = parse_number(raw[name])
        except ValueError:
            logger.debug("Dropping non-numeric calibration field %s", name)
    if not values:
        return None
    return Calibration(**values)


def build_metadata(
    raw: Mapping[str, Any], provenance: Optional[Provenance] = None
) -> ReadingMetadata:
    """Copy best-effort sensor metadata; invalid entries are dropped silently."""
    battery = _bounded_number(raw, "batteryLevel", 0, 100)
    signal = _bounded_number(raw, "signalStrength", 0, 100)
    origin = provenance or Provenance()
    return ReadingMetadata(
        raw_value=_bounded_number(raw, "rawValue", 0),
        battery_level=int(battery) if battery is not None else None,
        signal_strength=int(signal) if signal is not None else None,
        calibration=_calibration(raw.get("calibration")),
        source_ip=_truncate(origin.source_ip, MAX_SOURCE_IP_LENGTH),
        user_agent=_truncate(origin.user_agent, MAX_USER_AGENT_LENGTH),
    )


def normalize(
    draft: ReadingDraft,
    default_device: str,
    provenance: Optional[Provenance] = None,
    now: Optional[datetime] = None,
) -> Reading:
    current = now or datetime.now(timezone.utc)

    timestamp = draft.timestamp or current
    if timestamp > current:
        logger.info(
            "Clamping future timestamp to now",
            extra={"owner_id": draft.owner_id, "value": draft.value},
        )
        timestamp = current

    return Reading(
        value=round_half_up(draft.value, 1),
        timestamp=timestamp,
        trend=draft.trend or Trend.unknown,
        noise=draft.noise or Noise.clean,
        device=draft.device or default_device,
        owner_id=draft.owner_id,
        metadata=build_metadata(draft.raw_metadata, provenance),
    )
