# src/cache/coordinator.py — v1
"""Cache-first resolution of dish photos.

Lookup order, first hit wins:
    1. local tier, exact digest          → local_exact
    2. local tier, perceptual similarity → local_similar
    3. persistent tier, exact digest     → remote_exact
    4. persistent tier, subject name     → remote_semantic
    5. analysis pipeline                 → generated

Tier failures degrade to a miss; pipeline failures propagate.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

from bitecache.cache.fingerprint import compute_fingerprint
from bitecache.cache.hasher import content_digest
from bitecache.cache.local_tier import LocalTier
from bitecache.cache.models import CacheEntry, CacheStats, ResolveOrigin, ResolveResult
from bitecache.cache.persistent_tier import PersistentTier
from bitecache.cache.similarity import signature_distance
from bitecache.core.errors import DecodeError, PipelineError, StorageError
from bitecache.core.models import AnalysisRecord
from bitecache.logging.context import clear_context, set_image_digest, set_request_context
from bitecache.pipeline.analysis_pipeline import AnalysisPipeline

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 5
SIMILARITY_LIMIT = 5

R = TypeVar("R")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheCoordinator:
    """Resolve an image to an AnalysisRecord, consulting both tiers first."""

    def __init__(
        self,
        local: LocalTier,
        persistent: PersistentTier,
        pipeline: AnalysisPipeline,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.local = local
        self.persistent = persistent
        self.pipeline = pipeline
        self._clock = clock or _utcnow

    async def resolve(
        self, image_bytes: bytes, media_type: str | None = None
    ) -> ResolveResult:
        """Return the analysis for *image_bytes* and where it came from.

        Raises:
            NotFoodError: The photo is not a dish. Nothing is cached.
            ModelUnavailableError: A model call failed or timed out.
            MalformedResponseError: Model output could not be validated.
        """
        set_request_context(uuid.uuid4().hex[:12])
        try:
            return await self._resolve(image_bytes, media_type)
        finally:
            clear_context()

    async def _resolve(self, image_bytes: bytes, media_type: str | None) -> ResolveResult:
        try:
            fingerprint: str | None = compute_fingerprint(image_bytes)
        except DecodeError as e:
            logger.debug("Fingerprint unavailable, skipping similarity: %s", e)
            fingerprint = None

        digest = content_digest(image_bytes)
        set_image_digest(digest[:16])

        entry = await self._absorb(self.local.lookup_exact(digest), "local.lookup_exact")
        if entry is not None:
            logger.info("Resolved from local tier (exact)")
            return ResolveResult(
                record=entry.record, origin=ResolveOrigin.LOCAL_EXACT, exact_digest=digest
            )

        if fingerprint is not None:
            matches = await self._absorb(
                self.local.lookup_similar(fingerprint, SIMILARITY_THRESHOLD, SIMILARITY_LIMIT),
                "local.lookup_similar",
            )
            if matches:
                best = matches[0]
                distance = signature_distance(fingerprint, best.fingerprint or "")
                logger.info("Resolved from local tier (similar, distance=%d)", distance)
                await self._store_local(digest, fingerprint, best.record)
                return ResolveResult(
                    record=best.record,
                    origin=ResolveOrigin.LOCAL_SIMILAR,
                    exact_digest=digest,
                    distance=distance,
                )

        persisted = await self._absorb(
            self.persistent.lookup_exact(digest), "persistent.lookup_exact"
        )
        if persisted is not None:
            logger.info("Resolved from persistent tier (exact)")
            await self._store_local(digest, fingerprint, persisted.record)
            return ResolveResult(
                record=persisted.record, origin=ResolveOrigin.REMOTE_EXACT, exact_digest=digest
            )

        subject = await self._guess_subject(image_bytes, media_type)
        if subject:
            persisted = await self._absorb(
                self.persistent.lookup_by_subject(subject), "persistent.lookup_by_subject"
            )
            if persisted is not None:
                logger.info("Resolved from persistent tier (subject %r)", subject)
                await self._store_local(digest, fingerprint, persisted.record)
                return ResolveResult(
                    record=persisted.record,
                    origin=ResolveOrigin.REMOTE_SEMANTIC,
                    exact_digest=digest,
                )

        logger.info("Cache miss, running analysis pipeline")
        record = await self.pipeline.run(image_bytes, media_type)
        await self._absorb(
            self.persistent.put(digest, record.subject_name, record), "persistent.put"
        )
        await self._store_local(digest, fingerprint, record)
        return ResolveResult(record=record, origin=ResolveOrigin.GENERATED, exact_digest=digest)

    # --- Administration ---

    async def purge_all(self) -> int:
        local = await self.local.delete_all()
        persistent = await self.persistent.delete_all()
        logger.info("Purged all entries (local=%d, persistent=%d)", local, persistent)
        return local + persistent

    async def purge_older_than(self, days: float) -> int:
        if days <= 0:
            raise ValueError("days must be > 0")
        local = await self.local.delete_older_than(days)
        persistent = await self.persistent.delete_older_than(days)
        return local + persistent

    async def purge_by_category(self, category: str) -> int:
        local = await self.local.delete_by_category(category)
        persistent = await self.persistent.delete_by_category(category)
        return local + persistent

    async def purge_above_calories(self, threshold: float) -> int:
        local = await self.local.delete_by_calories_above(threshold)
        persistent = await self.persistent.delete_by_calories_above(threshold)
        return local + persistent

    async def run_maintenance(self) -> int:
        """Gated local expiry sweep, at most once per day."""
        removed = await self.local.maybe_evict_expired()
        if removed:
            logger.info("Maintenance evicted %d expired local entries", removed)
        return removed

    async def stats(self) -> dict[str, CacheStats]:
        return {
            self.local.name: await self.local.stats(),
            self.persistent.name: await self.persistent.stats(),
        }

    # --- Internals ---

    async def _guess_subject(self, image_bytes: bytes, media_type: str | None) -> str | None:
        try:
            return await self.pipeline.guess_subject(image_bytes, media_type)
        except PipelineError as e:
            logger.debug("Subject guess failed, skipping semantic lookup: %s", e)
            return None

    async def _store_local(
        self, digest: str, fingerprint: str | None, record: AnalysisRecord
    ) -> None:
        entry = CacheEntry(
            exact_digest=digest,
            fingerprint=fingerprint,
            record=record,
            created_at=self._clock(),
        )
        await self._absorb(self.local.put(entry), "local.put")

    @staticmethod
    async def _absorb(call: Awaitable[R], operation: str) -> R | None:
        """Await a tier call, turning StorageError into a miss."""
        try:
            return await call
        except StorageError as e:
            logger.warning("Tier operation %s failed, treating as miss: %s", operation, e)
            return None
