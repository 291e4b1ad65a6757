"""HTTP route definitions for the service."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status

from app.auth import (
    optional_credentials,
    require_credentials,
    require_credentials_in_multi_user_mode,
)
from app.schemas import (
    HealthResponse,
    IngestedReading,
    IngestResponse,
    LatestResponse,
    PageStats,
    QueryEcho,
    RangeCounts,
    ReadingOut,
    ReadingsResponse,
    StatsData,
    StatsResponse,
)
from errors import FieldViolation, ValidationError
from models.records import StoredReading
from services.derived import round_half_up
from services.normalizer import Provenance
from services.readings import ReadingService, build_default_service
from services.validator import (
    validate_owner_query,
    validate_readings_query,
    validate_stats_query,
)

router = APIRouter()

_STARTED_AT = time.monotonic()


def get_service() -> ReadingService:
    return build_default_service()


def _provenance(request: Request, trust_proxy: bool) -> Provenance:
    source_ip: Optional[str] = request.client.host if request.client else None
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            source_ip = forwarded.split(",")[0].strip() or source_ip
    return Provenance(source_ip=source_ip, user_agent=request.headers.get("user-agent"))


def _reading_event(reading: StoredReading) -> Dict[str, Any]:
    return ReadingOut.from_reading(reading).model_dump(mode="json", by_alias=True)


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError(
            [FieldViolation("body", "Request body must be valid JSON", None)]
        ) from exc


@router.post(
    "/api/ingest",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestResponse,
    summary="Store one glucose reading from a CGM client.",
)
@router.post(
    "/api/xdrip",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestResponse,
    summary="xDrip+ compatible alias of /api/ingest.",
)
async def ingest_reading(
    request: Request,
    _auth: None = Depends(optional_credentials),
    service: ReadingService = Depends(get_service),
) -> IngestResponse:
    payload = await _read_json(request)
    stored = service.ingest(
        payload,
        provenance=_provenance(request, service.settings.trust_proxy),
        event_builder=_reading_event,
    )
    return IngestResponse(data=IngestedReading.from_reading(stored))


@router.get(
    "/api/readings",
    response_model=ReadingsResponse,
    summary="List readings newest first with optional owner and time filters.",
)
async def list_readings(
    request: Request,
    _auth: None = Depends(require_credentials_in_multi_user_mode),
    service: ReadingService = Depends(get_service),
) -> ReadingsResponse:
    query = validate_readings_query(
        request.query_params, default_limit=service.settings.default_limit
    )
    page = service.list_readings(query)
    now = datetime.now(timezone.utc)
    count = len(page.readings)
    summary = page.summary
    return ReadingsResponse(
        message=f"Retrieved {count} glucose reading{'' if count == 1 else 's'}",
        data=[ReadingOut.from_reading(reading, now) for reading in page.readings],
        stats=PageStats(
            count=summary.count,
            latest=page.readings[0].timestamp if page.readings else None,
            oldest=page.readings[-1].timestamp if page.readings else None,
            average=round_half_up(summary.average, 1),
            minimum=summary.minimum,
            maximum=summary.maximum,
            range=RangeCounts(
                low=summary.low_count,
                normal=summary.normal_count,
                high=summary.high_count,
            ),
        ),
        query=QueryEcho(
            limit=query.limit,
            owner_id=query.owner_id,
            since=query.since,
            until=query.until,
        ),
    )


@router.get(
    "/api/readings/latest",
    response_model=LatestResponse,
    summary="Fetch the most recent reading.",
)
@router.get("/api/latest", response_model=LatestResponse, include_in_schema=False)
async def latest_reading(
    request: Request,
    _auth: None = Depends(require_credentials),
    service: ReadingService = Depends(get_service),
) -> LatestResponse:
    owner_id = validate_owner_query(request.query_params)
    reading = service.latest(owner_id)
    return LatestResponse(data=ReadingOut.from_reading(reading))


def _stats_response(
    service: ReadingService, owner_id: Optional[str], hours: Optional[str]
) -> StatsResponse:
    query = validate_stats_query(
        owner_id, hours, default_hours=service.settings.default_stats_hours
    )
    summary = service.stats(query)
    return StatsResponse(
        message=f"Statistics for the last {query.hours:g} hours",
        data=StatsData.from_summary(summary),
    )


@router.get(
    "/api/stats",
    response_model=StatsResponse,
    summary="Time-in-range statistics across all owners.",
)
async def stats_for_all(
    request: Request,
    _auth: None = Depends(require_credentials),
    service: ReadingService = Depends(get_service),
) -> StatsResponse:
    return _stats_response(service, None, request.query_params.get("hours"))


@router.get(
    "/api/stats/{owner_id}",
    response_model=StatsResponse,
    summary="Time-in-range statistics for one owner.",
)
async def stats_for_owner(
    owner_id: str,
    request: Request,
    _auth: None = Depends(require_credentials),
    service: ReadingService = Depends(get_service),
) -> StatsResponse:
    return _stats_response(service, owner_id, request.query_params.get("hours"))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(service: ReadingService = Depends(get_service)) -> HealthResponse:
    return HealthResponse(
        timestamp=datetime.now(timezone.utc),
        uptime=time.monotonic() - _STARTED_AT,
        environment=service.settings.environment,
        version=service.settings.version,
    )


@router.get(
    "/",
    summary="Root endpoint lists the available routes.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, Any]:
    return {
        "message": "CGM Glucose Telemetry API",
        "endpoints": {
            "health": "/health",
            "ingest": "/api/ingest",
            "xdrip_upload": "/api/xdrip",
            "readings": "/api/readings",
            "latest": "/api/readings/latest",
            "stats": "/api/stats",
            "stream": "/api/stream",
        },
    }
