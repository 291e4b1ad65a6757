from __future__ import annotations

import bisect
import json
import logging
import os
from dataclasses import asdict, fields
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from errors import DuplicateError, StoreError
from models.records import (
    Calibration,
    Noise,
    Reading,
    ReadingFilter,
    ReadingMetadata,
    StoredReading,
    Trend,
    new_identifier,
)
from services.aggregator import AggregationSummary, Aggregator
from settings import MAX_LIMIT, get_settings

logger = logging.getLogger(__name__)


def _sort_key(reading: StoredReading) -> tuple[float, int]:
    # Newest timestamp first; equal timestamps keep insertion order.
    return (-reading.timestamp.timestamp(), reading.sequence)


def _to_document(reading: StoredReading) -> Dict[str, Any]:
    document = asdict(reading)
    document["timestamp"] = reading.timestamp.isoformat()
    document["trend"] = reading.trend.value
    document["noise"] = reading.noise.value
    return document


def _from_document(document: Dict[str, Any]) -> StoredReading:
    metadata = dict(document.get("metadata") or {})
    calibration = metadata.pop("calibration", None)
    return StoredReading(
        id=document["id"],
        sequence=int(document["sequence"]),
        value=float(document["value"]),
        timestamp=datetime.fromisoformat(document["timestamp"]),
        trend=Trend(document["trend"]),
        noise=Noise(document["noise"]),
        device=document["device"],
        owner_id=document.get("owner_id"),
        metadata=ReadingMetadata(
            calibration=Calibration(**calibration) if calibration else None,
            **metadata,
        ),
    )


class ReadingTable:
    """In-memory reading store with optional JSON persistence.

    Readings are kept in two sorted indexes, one over ``timestamp desc`` and
    one per owner over ``(owner_id, timestamp desc)``.
    """

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        id_factory: Callable[[], str] = new_identifier,
        aggregator: Optional[Aggregator] = None,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._id_factory = id_factory
        self._aggregator = aggregator or Aggregator()
        self._items: Dict[str, StoredReading] = {}
        self._timeline: List[StoredReading] = []
        self._by_owner: Dict[Optional[str], List[StoredReading]] = {}
        self._sequence = 0
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def insert(self, reading: Reading) -> StoredReading:
        with self._lock:
            reading_id = self._id_factory()
            if reading_id in self._items:
                logger.warning(
                    "Duplicate reading id rejected",
                    extra={"reading_id": reading_id, "error_kind": DuplicateError.kind},
                )
                raise DuplicateError("A reading with this data already exists")

            self._sequence += 1
            stored = StoredReading(
                id=reading_id,
                sequence=self._sequence,
                **{item.name: getattr(reading, item.name) for item in fields(Reading)},
            )
            self._index(stored)
            try:
                self._persist()
            except OSError as exc:
                self._unindex(stored)
                self._sequence -= 1
                logger.error(
                    "Failed to persist reading",
                    extra={"reading_id": reading_id, "error_kind": StoreError.kind},
                )
                raise StoreError("Failed to save glucose reading", cause=exc) from exc
            return stored

    def find(self, query: ReadingFilter, limit: int = 10) -> list[StoredReading]:
        if not 1 <= limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}, got {limit}")

        results: list[StoredReading] = []
        with self._lock:
            for reading in self._candidates(query):
                if not query.matches(reading):
                    continue
                results.append(reading)
                if len(results) == limit:
                    break
        return results

    def find_one(self, query: ReadingFilter) -> Optional[StoredReading]:
        found = self.find(query, limit=1)
        return found[0] if found else None

    def aggregate(self, query: ReadingFilter) -> AggregationSummary:
        """Summarize every matching reading; not bounded by any page limit."""
        with self._lock:
            matching = [reading for reading in self._candidates(query) if query.matches(reading)]
        return self._aggregator.aggregate(matching)

    def _candidates(self, query: ReadingFilter) -> List[StoredReading]:
        if query.owner_id is not None:
            return self._by_owner.get(query.owner_id, [])
        return self._timeline

    def _index(self, reading: StoredReading) -> None:
        self._items[reading.id] = reading
        bisect.insort(self._timeline, reading, key=_sort_key)
        bisect.insort(self._by_owner.setdefault(reading.owner_id, []), reading, key=_sort_key)

    def _unindex(self, reading: StoredReading) -> None:
        self._items.pop(reading.id, None)
        self._timeline.remove(reading)
        owned = self._by_owner.get(reading.owner_id, [])
        owned.remove(reading)
        if not owned:
            self._by_owner.pop(reading.owner_id, None)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [
            _to_document(item)
            for item in sorted(self._items.values(), key=lambda item: item.sequence)
        ]
        staging = self.persistence_path.with_name(self.persistence_path.name + ".tmp")
        try:
            staging.write_text(json.dumps(payload, indent=2))
            os.replace(staging, self.persistence_path)
        except OSError:
            staging.unlink(missing_ok=True)
            raise

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            documents = json.loads(raw)
            readings = [_from_document(document) for document in documents]
        except (OSError, ValueError, KeyError, TypeError):
            logger.warning(
                "Ignoring unreadable reading table file %s", self.persistence_path
            )
            readings = []

        for reading in readings:
            self._index(reading)
            self._sequence = max(self._sequence, reading.sequence)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ReadingTable:
    settings = get_settings()
    table_name = settings.table_name if name is None else name
    table_path = settings.table_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ReadingTable(name=table_name, persistence_path=persistence)
