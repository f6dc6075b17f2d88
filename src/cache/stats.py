# src/cache/stats.py — v1
"""Cache statistics aggregation shared by both tiers."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable

from bitecache.cache.models import CacheStats, SubjectCount
from bitecache.core.models import AnalysisRecord

_TOP_SUBJECTS = 5


def build_stats(
    items: Iterable[tuple[AnalysisRecord, datetime]],
    size_bytes: int = 0,
) -> CacheStats:
    """Aggregate (record, created_at) pairs into CacheStats."""
    items = list(items)
    if not items:
        return CacheStats(size_bytes=size_bytes)

    subjects: Counter[str] = Counter()
    categories: Counter[str] = Counter()
    total_calories = 0.0
    timestamps: list[datetime] = []

    for record, created_at in items:
        subjects[record.subject_name] += 1
        categories[record.category] += 1
        total_calories += record.calories
        timestamps.append(created_at)

    return CacheStats(
        total_entries=len(items),
        size_bytes=size_bytes,
        oldest_entry=min(timestamps),
        newest_entry=max(timestamps),
        popular_subjects=[
            SubjectCount(name=name, count=count)
            for name, count in subjects.most_common(_TOP_SUBJECTS)
        ],
        average_calories=round(total_calories / len(items), 1),
        categories=[
            SubjectCount(name=name, count=count)
            for name, count in categories.most_common()
        ],
    )
