"""Field-level validation for inbound readings and query parameters.

Every rule runs before anything is raised, so a rejected request reports all
of its violations at once.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from errors import FieldViolation, ValidationError
from models.records import (
    MAX_DEVICE_LENGTH,
    MAX_VALUE,
    MIN_VALUE,
    Noise,
    ReadingDraft,
    Trend,
    canonical_identifier,
)
from settings import MAX_LIMIT, MAX_STATS_HOURS

METADATA_FIELDS = ("rawValue", "batteryLevel", "signalStrength", "calibration")

_TREND_MESSAGE = "Trend must be one of: " + ", ".join(item.value for item in Trend)
_NOISE_MESSAGE = "Noise must be one of: " + ", ".join(item.value for item in Noise)


@dataclass(frozen=True)
class ReadingsQuery:
    limit: int
    owner_id: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None


@dataclass(frozen=True)
class StatsQuery:
    hours: float
    owner_id: Optional[str] = None


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO 8601 value into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        if not isinstance(value, str):
            raise ValueError("Timestamp must be a string.")
        candidate = value.strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")

        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def parse_number(value: Any) -> float:
    """Parse a finite number from a JSON number or numeric string."""
    if isinstance(value, bool):
        raise ValueError("Booleans are not numbers.")
    try:
        if isinstance(value, (int, float)):
            parsed = float(value)
        elif isinstance(value, str):
            parsed = float(value.strip())
        else:
            raise ValueError("Not a number.")
    except OverflowError as exc:
        raise ValueError("Number is out of range.") from exc
    if not math.isfinite(parsed):
        raise ValueError("Number must be finite.")
    return parsed


def _check_owner_id(
    value: Any, field: str, violations: List[FieldViolation]
) -> Optional[str]:
    if not isinstance(value, str):
        violations.append(
            FieldViolation(field, "OwnerId must be a valid identifier", value)
        )
        return None
    try:
        return canonical_identifier(value)
    except ValueError:
        violations.append(
            FieldViolation(field, "OwnerId must be a valid identifier", value)
        )
        return None


def _check_timestamp(
    value: Any, field: str, message: str, violations: List[FieldViolation]
) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except ValueError:
        violations.append(FieldViolation(field, message, value))
        return None


def validate_reading(payload: Any, require_owner: bool = False) -> ReadingDraft:
    """Validate an untyped ingestion payload into a ``ReadingDraft``.

    The xDrip+ field name ``glucose`` is accepted when ``value`` is absent.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError(
            [FieldViolation("body", "Request body must be a JSON object", payload)]
        )

    violations: List[FieldViolation] = []

    raw_value = payload.get("value")
    if raw_value is None:
        raw_value = payload.get("glucose")

    value: Optional[float] = None
    if raw_value is None:
        violations.append(FieldViolation("value", "Glucose value is required", None))
    else:
        try:
            value = parse_number(raw_value)
        except ValueError:
            violations.append(
                FieldViolation("value", "Glucose must be a number", raw_value)
            )
        else:
            if not MIN_VALUE <= value <= MAX_VALUE:
                violations.append(
                    FieldViolation(
                        "value", "Glucose must be between 0 and 1000", raw_value
                    )
                )
                value = None

    timestamp: Optional[datetime] = None
    if payload.get("timestamp") is not None:
        timestamp = _check_timestamp(
            payload["timestamp"],
            "timestamp",
            "Timestamp must be a valid ISO 8601 date",
            violations,
        )

    trend: Optional[Trend] = None
    if payload.get("trend") is not None:
        try:
            trend = Trend(payload["trend"])
        except ValueError:
            violations.append(FieldViolation("trend", _TREND_MESSAGE, payload["trend"]))

    noise: Optional[Noise] = None
    if payload.get("noise") is not None:
        try:
            noise = Noise(payload["noise"])
        except ValueError:
            violations.append(FieldViolation("noise", _NOISE_MESSAGE, payload["noise"]))

    device: Optional[str] = None
    raw_device = payload.get("device")
    if raw_device is not None:
        if not isinstance(raw_device, str) or len(raw_device.strip()) > MAX_DEVICE_LENGTH:
            violations.append(
                FieldViolation(
                    "device",
                    "Device name must be a string with max 100 characters",
                    raw_device,
                )
            )
        else:
            device = raw_device.strip() or None

    owner_id: Optional[str] = None
    if payload.get("ownerId") is not None:
        owner_id = _check_owner_id(payload["ownerId"], "ownerId", violations)
    elif require_owner:
        violations.append(FieldViolation("ownerId", "OwnerId is required", None))

    if violations or value is None:
        raise ValidationError(violations)

    raw_metadata: Dict[str, Any] = {
        name: payload[name] for name in METADATA_FIELDS if payload.get(name) is not None
    }

    return ReadingDraft(
        value=value,
        timestamp=timestamp,
        trend=trend,
        noise=noise,
        device=device,
        owner_id=owner_id,
        raw_metadata=raw_metadata,
    )


def validate_readings_query(
    params: Mapping[str, Any], default_limit: int = 10
) -> ReadingsQuery:
    violations: List[FieldViolation] = []

    limit = default_limit
    raw_limit = params.get("limit")
    if raw_limit is not None and raw_limit != "":
        try:
            limit = int(str(raw_limit).strip())
        except ValueError:
            limit = 0
        if not 1 <= limit <= MAX_LIMIT:
            violations.append(
                FieldViolation("limit", "Limit must be between 1 and 100", raw_limit)
            )

    owner_id: Optional[str] = None
    if params.get("ownerId"):
        owner_id = _check_owner_id(params["ownerId"], "ownerId", violations)

    since: Optional[datetime] = None
    if params.get("since"):
        since = _check_timestamp(
            params["since"], "since", "Since must be a valid ISO 8601 date", violations
        )

    until: Optional[datetime] = None
    if params.get("until"):
        until = _check_timestamp(
            params["until"], "until", "Until must be a valid ISO 8601 date", violations
        )

    if violations:
        raise ValidationError(violations, message="Invalid query parameters")

    return ReadingsQuery(limit=limit, owner_id=owner_id, since=since, until=until)


def validate_owner_query(params: Mapping[str, Any]) -> Optional[str]:
    violations: List[FieldViolation] = []
    owner_id: Optional[str] = None
    if params.get("ownerId"):
        owner_id = _check_owner_id(params["ownerId"], "ownerId", violations)
    if violations:
        raise ValidationError(violations, message="Invalid query parameters")
    return owner_id


def validate_stats_query(
    owner_id: Optional[str], hours: Any, default_hours: float = 24.0
) -> StatsQuery:
    violations: List[FieldViolation] = []

    canonical_owner: Optional[str] = None
    if owner_id:
        canonical_owner = _check_owner_id(owner_id, "ownerId", violations)

    window = default_hours
    if hours is not None and hours != "":
        try:
            window = parse_number(hours)
        except ValueError:
            window = 0.0
        if window <= 0:
            violations.append(
                FieldViolation("hours", "Hours must be a positive number", hours)
            )
        elif window > MAX_STATS_HOURS:
            violations.append(
                FieldViolation(
                    "hours", f"Hours must not exceed {MAX_STATS_HOURS}", hours
                )
            )

    if violations:
        raise ValidationError(violations, message="Invalid query parameters")

    return StatsQuery(hours=window, owner_id=canonical_owner)
