"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import Noise, ReadingMetadata, StoredReading, Trend
from services.derived import derive
from services.statistics import StatsSummary


class ApiModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CalibrationOut(ApiModel):
    slope: Optional[float] = None
    intercept: Optional[float] = None
    scale: Optional[float] = None


class MetadataOut(ApiModel):
    """Sensor metadata; request provenance is deliberately absent."""

    raw_value: Optional[float] = None
    battery_level: Optional[int] = None
    signal_strength: Optional[int] = None
    calibration: Optional[CalibrationOut] = None

    @classmethod
    def from_metadata(cls, metadata: ReadingMetadata) -> "MetadataOut":
        calibration = metadata.calibration
        return cls(
            raw_value=metadata.raw_value,
            battery_level=metadata.battery_level,
            signal_strength=metadata.signal_strength,
            calibration=(
                CalibrationOut(
                    slope=calibration.slope,
                    intercept=calibration.intercept,
                    scale=calibration.scale,
                )
                if calibration is not None
                else None
            ),
        )


class ReadingOut(ApiModel):
    """A stored reading with its derived view, evaluated at response time."""

    id: str
    value: float = Field(..., description="Glucose concentration in mg/dL.")
    value_mmol: float = Field(..., description="Glucose concentration in mmol/L.")
    timestamp: datetime
    trend: Trend
    noise: Noise
    device: str
    owner_id: Optional[str] = None
    metadata: MetadataOut
    time_ago: str
    is_low: bool
    is_high: bool
    is_in_range: bool

    @classmethod
    def from_reading(
        cls, reading: StoredReading, now: Optional[datetime] = None
    ) -> "ReadingOut":
        view = derive(reading, now)
        return cls(
            id=reading.id,
            value=reading.value,
            value_mmol=view.value_mmol,
            timestamp=reading.timestamp,
            trend=reading.trend,
            noise=reading.noise,
            device=reading.device,
            owner_id=reading.owner_id,
            metadata=MetadataOut.from_metadata(reading.metadata),
            time_ago=view.time_ago,
            is_low=view.is_low,
            is_high=view.is_high,
            is_in_range=view.is_in_range,
        )


class IngestedReading(ApiModel):
    id: str
    value: float
    timestamp: datetime
    trend: Trend
    noise: Noise
    device: str
    time_ago: str

    @classmethod
    def from_reading(
        cls, reading: StoredReading, now: Optional[datetime] = None
    ) -> "IngestedReading":
        return cls(
            id=reading.id,
            value=reading.value,
            timestamp=reading.timestamp,
            trend=reading.trend,
            noise=reading.noise,
            device=reading.device,
            time_ago=derive(reading, now).time_ago,
        )


class IngestResponse(ApiModel):
    success: bool = True
    message: str = "Glucose reading saved successfully"
    data: IngestedReading


class RangeCounts(ApiModel):
    low: int = Field(..., ge=0)
    normal: int = Field(..., ge=0)
    high: int = Field(..., ge=0)


class PageStats(ApiModel):
    """Statistics over the returned page only."""

    count: int = Field(..., ge=0)
    latest: Optional[datetime] = None
    oldest: Optional[datetime] = None
    average: float = 0.0
    minimum: float = Field(0.0, alias="min")
    maximum: float = Field(0.0, alias="max")
    range: RangeCounts


class QueryEcho(ApiModel):
    limit: int
    owner_id: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None


class ReadingsResponse(ApiModel):
    success: bool = True
    message: str
    data: List[ReadingOut]
    stats: PageStats
    query: QueryEcho


class LatestResponse(ApiModel):
    success: bool = True
    message: str = "Latest glucose reading retrieved"
    data: ReadingOut


class TimeInRangeOut(ApiModel):
    low: int
    normal: int
    high: int


class PeriodOut(ApiModel):
    hours: float
    since: datetime
    until: datetime


class StatsData(ApiModel):
    count: int = Field(..., ge=0)
    average: float
    minimum: float = Field(..., alias="min")
    maximum: float = Field(..., alias="max")
    low: int
    normal: int
    high: int
    time_in_range: TimeInRangeOut
    period: PeriodOut

    @classmethod
    def from_summary(cls, summary: StatsSummary) -> "StatsData":
        return cls(
            count=summary.count,
            average=summary.average,
            minimum=summary.minimum,
            maximum=summary.maximum,
            low=summary.low_count,
            normal=summary.normal_count,
            high=summary.high_count,
            time_in_range=TimeInRangeOut(
                low=summary.time_in_range.low,
                normal=summary.time_in_range.normal,
                high=summary.time_in_range.high,
            ),
            period=PeriodOut(
                hours=summary.period.hours,
                since=summary.period.since,
                until=summary.period.until,
            ),
        )


class StatsResponse(ApiModel):
    success: bool = True
    message: str
    data: StatsData


class HealthResponse(ApiModel):
    status: str = "OK"
    timestamp: datetime
    uptime: float = Field(..., ge=0, description="Seconds since the process started.")
    environment: str
    version: str


class ErrorDetail(ApiModel):
    field: str
    message: str
    rejected_value: Any = None


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
    message: str
    details: Optional[Any] = None
    stack: Optional[List[str]] = None
