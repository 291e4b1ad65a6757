"""Ingestion and query orchestration for glucose readings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from datastore.base import ReadingStore
from datastore.reading_table import build_default_table
from errors import NotFoundError
from models.records import ReadingFilter, StoredReading
from services.aggregator import AggregationSummary, Aggregator
from services.normalizer import Provenance, normalize
from services.notifier import ReadingEvent, ReadingNotifier
from services.statistics import StatisticsService, StatsSummary
from services.validator import ReadingsQuery, StatsQuery, validate_reading
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

EventBuilder = Callable[[StoredReading], Dict[str, Any]]


@dataclass(frozen=True)
class ReadingPage:
    readings: List[StoredReading]
    summary: AggregationSummary
    query: ReadingsQuery


class ReadingService:
    """Coordinates validation, normalization, storage and notification."""

    def __init__(
        self,
        store: ReadingStore,
        notifier: ReadingNotifier,
        settings: Settings,
        aggregator: Optional[Aggregator] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.settings = settings
        self.aggregator = aggregator or Aggregator()
        self.statistics = StatisticsService(store)

    def ingest(
        self,
        payload: Any,
        provenance: Optional[Provenance] = None,
        event_builder: Optional[EventBuilder] = None,
        now: Optional[datetime] = None,
    ) -> StoredReading:
        """Validate, normalize and store one reading, then notify subscribers.

        Raises ``ValidationError`` before anything touches the store; store
        errors propagate unchanged.
        """
        draft = validate_reading(payload, require_owner=self.settings.multi_user_mode)
        reading = normalize(
            draft,
            default_device=self.settings.default_device,
            provenance=provenance,
            now=now,
        )
        stored = self.store.insert(reading)
        logger.info(
            "Glucose reading stored",
            extra={
                "reading_id": stored.id,
                "owner_id": stored.owner_id,
                "value": stored.value,
                "device": stored.device,
            },
        )
        self._publish(stored, event_builder)
        return stored

    def list_readings(self, query: ReadingsQuery) -> ReadingPage:
        readings = list(
            self.store.find(
                ReadingFilter(owner_id=query.owner_id, since=query.since, until=query.until),
                limit=query.limit,
            )
        )
        return ReadingPage(
            readings=readings,
            summary=self.aggregator.aggregate(readings),
            query=query,
        )

    def latest(self, owner_id: Optional[str] = None) -> StoredReading:
        reading = self.store.find_one(ReadingFilter(owner_id=owner_id))
        if reading is None:
            raise NotFoundError("No glucose readings found")
        return reading

    def stats(self, query: StatsQuery, now: Optional[datetime] = None) -> StatsSummary:
        return self.statistics.summarize(
            hours=query.hours, owner_id=query.owner_id, now=now or datetime.now(timezone.utc)
        )

    def shutdown(self) -> None:
        self.notifier.close()

    def _publish(self, stored: StoredReading, event_builder: Optional[EventBuilder]) -> None:
        try:
            data = event_builder(stored) if event_builder else {"id": stored.id}
            self.notifier.notify(
                ReadingEvent(event_type="reading", data=data, owner_id=stored.owner_id)
            )
        except Exception:
            logger.warning(
                "Reading notification failed",
                exc_info=True,
                extra={"reading_id": stored.id},
            )


@lru_cache
def build_default_service() -> ReadingService:
    """Factory that wires the service with the default table and notifier."""
    settings = get_settings()
    return ReadingService(
        store=build_default_table(),
        notifier=ReadingNotifier(queue_size=settings.notifier_queue_size),
        settings=settings,
    )
