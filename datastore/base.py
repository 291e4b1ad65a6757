"""Contract every reading store implementation satisfies."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from models.records import Reading, ReadingFilter, StoredReading
from services.aggregator import AggregationSummary


class ReadingStore(Protocol):
    """Insert/find/aggregate operations the reading service depends on.

    Implementations raise ``errors.DuplicateError`` on uniqueness conflicts
    and ``errors.StoreError`` on any other persistence failure; native driver
    errors never cross this boundary.
    """

    def insert(self, reading: Reading) -> StoredReading:
        ...

    def find(self, query: ReadingFilter, limit: int = 10) -> Sequence[StoredReading]:
        ...

    def find_one(self, query: ReadingFilter) -> Optional[StoredReading]:
        ...

    def aggregate(self, query: ReadingFilter) -> AggregationSummary:
        ...
