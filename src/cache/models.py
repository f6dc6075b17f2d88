# src/cache/models.py — v2
"""Cache domain models: CacheEntry, PersistedEntry, EvictionCriteria,
CacheStats, ResolveOrigin and ResolveResult.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from bitecache.core.models import AnalysisRecord


class CacheEntry(BaseModel):
    """LocalTier entry linking an image's digest and fingerprint to a record."""

    model_config = ConfigDict(frozen=True)

    exact_digest: str
    fingerprint: str | None = None
    record: AnalysisRecord
    created_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at


class PersistedEntry(BaseModel):
    """PersistentTier row: unique digest, secondary subject-name key."""

    model_config = ConfigDict(frozen=True)

    id: str
    exact_digest: str
    subject_name: str
    record: AnalysisRecord
    created_at: datetime


class EvictionCriteria(BaseModel):
    """Bulk eviction filter. An entry matching any set criterion is removed."""

    older_than_days: float | None = Field(default=None, gt=0)
    category: str | None = None
    calories_above: float | None = None
    calories_below: float | None = None

    def is_empty(self) -> bool:
        return (
            self.older_than_days is None
            and not self.category
            and self.calories_above is None
            and self.calories_below is None
        )

    def matches(self, entry: CacheEntry, now: datetime) -> bool:
        record = entry.record
        if self.older_than_days is not None:
            if entry.age(now) >= timedelta(days=self.older_than_days):
                return True
        if self.category and record.category.lower() == self.category.lower():
            return True
        if self.calories_above is not None and record.calories > self.calories_above:
            return True
        if self.calories_below is not None and record.calories < self.calories_below:
            return True
        return False


class SubjectCount(BaseModel):
    name: str
    count: int


class CacheStats(BaseModel):
    """Aggregate view over a tier's live entries."""

    total_entries: int = 0
    size_bytes: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    popular_subjects: list[SubjectCount] = Field(default_factory=list)
    average_calories: float = 0.0
    categories: list[SubjectCount] = Field(default_factory=list)


class ResolveOrigin(str, Enum):
    """Where a resolved record came from."""

    LOCAL_EXACT = "local_exact"
    LOCAL_SIMILAR = "local_similar"
    REMOTE_EXACT = "remote_exact"
    REMOTE_SEMANTIC = "remote_semantic"
    GENERATED = "generated"


class ResolveResult(BaseModel):
    """Return value of CacheCoordinator.resolve()."""

    model_config = ConfigDict(frozen=True)

    record: AnalysisRecord
    origin: ResolveOrigin
    exact_digest: str
    distance: int | None = None

    @property
    def cached(self) -> bool:
        return self.origin is not ResolveOrigin.GENERATED
