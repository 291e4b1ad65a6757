"""Server-Sent Events stream of newly ingested readings."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.api import get_service
from app.auth import require_credentials
from services.notifier import ReadingNotifier, Subscription
from services.readings import ReadingService
from services.validator import validate_owner_query

logger = logging.getLogger(__name__)

router = APIRouter()


def format_sse_event(event_type: str, data: Dict[str, Any], event_id: Optional[str] = None) -> str:
    lines = []
    if event_id:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event_type}")
    lines.append(f"data: {json.dumps(data)}")
    lines.append("")
    return "\n".join(lines) + "\n"


async def generate_reading_stream(
    request: Request,
    notifier: ReadingNotifier,
    subscription: Subscription,
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames until the client disconnects or the notifier closes."""
    event_counter = 0
    logger.info("Reading stream opened", extra={"owner_id": subscription.owner_id})
    try:
        yield ": connected\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await subscription.next_event(timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": heartbeat\n\n"
                continue
            if event is None:
                break
            event_counter += 1
            yield format_sse_event(event.event_type, event.data, str(event_counter))
    finally:
        notifier.unsubscribe(subscription)
        logger.info(
            "Reading stream closed",
            extra={"owner_id": subscription.owner_id, "result_count": event_counter},
        )


@router.get("/api/stream", summary="Stream newly stored readings as Server-Sent Events.")
async def stream_readings(
    request: Request,
    _auth: None = Depends(require_credentials),
    service: ReadingService = Depends(get_service),
) -> StreamingResponse:
    owner_id = validate_owner_query(request.query_params)
    subscription = service.notifier.subscribe(owner_id)
    return StreamingResponse(
        generate_reading_stream(
            request,
            service.notifier,
            subscription,
            service.settings.stream_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
