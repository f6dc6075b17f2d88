# src/cache/local_tier.py — v2
"""Client-owned local cache tier.

Bounded (oldest-first eviction beyond ``max_entries``) and time-expiring
(``expiry_days``, independent of capacity). Entries live in memory and are
written through to a single JSON document when ``path`` is set, together
with the timestamp of the last expiry sweep.

Storage failures never reach the caller: a corrupt document is discarded,
and a failed write is retried once after an expiry sweep before the tier
resets itself to empty.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, Field, ValidationError

from bitecache.cache.base_tier import BaseTier
from bitecache.cache.models import CacheEntry, CacheStats, EvictionCriteria
from bitecache.cache.similarity import find_similar
from bitecache.cache.stats import build_stats

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
DEFAULT_EXPIRY_DAYS = 30
CLEANUP_INTERVAL = timedelta(days=1)


class _LocalSnapshot(BaseModel):
    """On-disk layout of the local tier."""

    last_cleanup: datetime | None = None
    entries: list[CacheEntry] = Field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalTier(BaseTier):
    """Bounded, time-expiring cache addressable by digest and fingerprint."""

    name = "local"

    def __init__(
        self,
        path: Path | str | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        expiry_days: float = DEFAULT_EXPIRY_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._path = Path(path).expanduser() if path is not None else None
        self._max_entries = max_entries
        self._expiry = timedelta(days=expiry_days)
        self._clock = clock or _utcnow
        self._entries: list[CacheEntry] = []
        self._last_cleanup: datetime | None = None

        self._load()
        self._maybe_evict_expired()

    # --- Lookups ---

    async def lookup_exact(self, digest: str) -> CacheEntry | None:
        """Return the live entry for *digest*, if any."""
        for entry in self._live_entries():
            if entry.exact_digest == digest:
                return entry
        return None

    async def lookup_similar(
        self, signature: str, threshold: int, limit: int
    ) -> list[CacheEntry]:
        """Live entries within *threshold* of *signature*, best first."""
        return find_similar(signature, self._live_entries(), threshold, limit)

    async def list_entries(self) -> list[CacheEntry]:
        """All live (non-expired) entries, newest first."""
        return self._live_entries()

    async def search_by_subject(self, query: str) -> list[CacheEntry]:
        needle = query.strip().lower()
        return [e for e in self._live_entries() if needle in e.record.subject_name.lower()]

    async def by_category(self, category: str) -> list[CacheEntry]:
        wanted = category.strip().lower()
        return [e for e in self._live_entries() if e.record.category.lower() == wanted]

    async def by_calorie_range(self, low: float, high: float) -> list[CacheEntry]:
        return [e for e in self._live_entries() if low <= e.record.calories <= high]

    async def expired_entries(self) -> list[CacheEntry]:
        """Entries the next expiry sweep would remove."""
        now = self._clock()
        return [e for e in self._entries if e.age(now) >= self._expiry]

    # --- Writes ---

    async def put(self, entry: CacheEntry) -> None:
        """Insert or replace by digest, then enforce the capacity ceiling."""
        entries = [e for e in self._entries if e.exact_digest != entry.exact_digest]
        entries.insert(0, entry)
        entries.sort(key=lambda e: e.created_at, reverse=True)

        evicted = len(entries) - self._max_entries
        if evicted > 0:
            entries = entries[: self._max_entries]
            logger.debug("Local tier over capacity, evicted %d oldest entries", evicted)

        self._entries = entries
        self._persist()

    async def evict_expired(self, max_age_days: float | None = None) -> int:
        """Remove entries older than *max_age_days* (default: tier expiry)."""
        return self._evict_expired(max_age_days)

    async def maybe_evict_expired(self) -> int:
        """Run the expiry sweep if the last one is more than a day old."""
        return self._maybe_evict_expired()

    async def evict_by_criteria(self, criteria: EvictionCriteria) -> int:
        """Bulk removal of entries matching *criteria*. Returns count removed."""
        if criteria.is_empty():
            return 0
        now = self._clock()
        return self._remove_where(lambda e: criteria.matches(e, now), reason="criteria")

    async def delete_all(self) -> int:
        count = len(self._entries)
        self._entries = []
        self._persist()
        logger.info("Cleared all %d local cache entries", count)
        return count

    async def clear(self) -> int:
        return await self.delete_all()

    async def delete_older_than(self, days: float) -> int:
        return await self.evict_by_criteria(EvictionCriteria(older_than_days=days))

    async def delete_by_category(self, category: str) -> int:
        return await self.evict_by_criteria(EvictionCriteria(category=category))

    async def delete_by_calories_above(self, threshold: float) -> int:
        return await self.evict_by_criteria(EvictionCriteria(calories_above=threshold))

    async def stats(self) -> CacheStats:
        live = self._live_entries()
        size = len(_LocalSnapshot(entries=live).model_dump_json())
        return build_stats(((e.record, e.created_at) for e in live), size_bytes=size)

    @property
    def last_cleanup(self) -> datetime | None:
        return self._last_cleanup

    def __len__(self) -> int:
        return len(self._live_entries())

    # --- Internal helpers ---

    def _live_entries(self) -> list[CacheEntry]:
        now = self._clock()
        return [e for e in self._entries if e.age(now) < self._expiry]

    def _evict_expired(self, max_age_days: float | None = None) -> int:
        max_age = self._expiry if max_age_days is None else timedelta(days=max_age_days)
        now = self._clock()
        return self._remove_where(lambda e: e.age(now) >= max_age, reason="expired")

    def _maybe_evict_expired(self) -> int:
        now = self._clock()
        if self._last_cleanup is not None and now - self._last_cleanup < CLEANUP_INTERVAL:
            return 0
        logger.debug("Running scheduled local cache expiry sweep")
        self._last_cleanup = now
        removed = self._evict_expired()
        if removed == 0:
            # Persist the sweep timestamp even when nothing was removed.
            self._persist()
        return removed

    def _remove_where(self, predicate: Callable[[CacheEntry], bool], reason: str) -> int:
        kept = [e for e in self._entries if not predicate(e)]
        removed = len(self._entries) - len(kept)
        if removed:
            self._entries = kept
            self._persist()
            logger.info("Removed %d local cache entries (%s)", removed, reason)
        return removed

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            snapshot = _LocalSnapshot.model_validate_json(
                self._path.read_text(encoding="utf-8")
            )
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable local cache %s: %s", self._path, e)
            self._reset_storage()
            return
        self._entries = sorted(snapshot.entries, key=lambda e: e.created_at, reverse=True)
        self._last_cleanup = snapshot.last_cleanup

    def _persist(self) -> None:
        if self._path is None:
            return
        try:
            self._write_snapshot()
            return
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Local cache write failed (%s), retrying after expiry sweep", e)

        now = self._clock()
        self._entries = [e for e in self._entries if e.age(now) < self._expiry]
        try:
            self._write_snapshot()
        except (OSError, TypeError, ValueError) as e:
            logger.error("Local cache write failed after cleanup, resetting tier: %s", e)
            self._entries = []
            self._reset_storage()

    def _write_snapshot(self) -> None:
        assert self._path is not None
        snapshot = _LocalSnapshot(last_cleanup=self._last_cleanup, entries=self._entries)
        payload = snapshot.model_dump_json()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self._path)

    def _reset_storage(self) -> None:
        if self._path is None:
            return
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Could not remove local cache file %s: %s", self._path, e)

