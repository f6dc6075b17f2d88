# src/api/facade.py — v2
"""Public API facade — single entry point for dish photo analysis.

Usage:
    from bitecache.api.facade import analyze_image
    outcome = await analyze_image(image_bytes)

Pipeline failures are folded into AnalysisOutcome.status so callers can
tell "not food", "service unavailable" and "bad model output" apart
without catching exceptions. Unsupported uploads are rejected before any
model call.
"""

from __future__ import annotations

import logging
import time

from bitecache.api.models import AnalysisOutcome
from bitecache.cache.compression import compress_image
from bitecache.cache.coordinator import CacheCoordinator
from bitecache.cache.models import CacheStats, ResolveResult
from bitecache.cache.tier_factory import create_local_tier, create_persistent_tier
from bitecache.config.settings import Settings, load_settings
from bitecache.core.errors import (
    DecodeError,
    MalformedResponseError,
    ModelUnavailableError,
    NotFoodError,
    UnsupportedMediaError,
)
from bitecache.core.media import is_supported, sniff_media_type
from bitecache.llm.retry import with_retry
from bitecache.pipeline.analysis_pipeline import AnalysisPipeline

logger = logging.getLogger(__name__)


def build_coordinator(settings: Settings | None = None) -> CacheCoordinator:
    """Wire both tiers and the analysis pipeline from settings."""
    settings = settings or load_settings()
    return CacheCoordinator(
        local=create_local_tier(settings),
        persistent=create_persistent_tier(settings),
        pipeline=AnalysisPipeline.from_settings(settings),
    )


async def analyze_image(
    data: bytes,
    settings: Settings | None = None,
    coordinator: CacheCoordinator | None = None,
) -> AnalysisOutcome:
    """Analyze one dish photo, cache first.

    Args:
        data: Raw PNG or JPEG bytes.
        settings: Global settings. Loaded from .env if None.
        coordinator: Pre-built coordinator. Built from settings if None.

    Returns:
        AnalysisOutcome with status ok, not_food, unavailable or malformed.

    Raises:
        UnsupportedMediaError: If the bytes are not PNG or JPEG.
    """
    settings = settings or load_settings()
    if not is_supported(data):
        raise UnsupportedMediaError(sniff_media_type(data))

    if settings.compress_uploads:
        try:
            data = compress_image(
                data,
                max_dimension=settings.compress_max_dimension,
                quality=settings.compress_quality,
                min_bytes=settings.compress_min_bytes,
            )
        except DecodeError as e:
            logger.debug("Compression skipped, image not decodable: %s", e)
    media_type = sniff_media_type(data)

    coordinator = coordinator or build_coordinator(settings)
    start = time.monotonic()

    try:
        result: ResolveResult = await with_retry(
            coordinator.resolve, data, media_type, max_attempts=settings.resolve_retries
        )
    except NotFoodError as e:
        return AnalysisOutcome(
            status="not_food",
            confidence=e.confidence,
            stage=e.stage,
            message=str(e),
            elapsed_ms=_elapsed_ms(start),
        )
    except ModelUnavailableError as e:
        logger.error("Model unavailable during %s: %s", e.stage, e)
        return AnalysisOutcome(
            status="unavailable", stage=e.stage, message=str(e), elapsed_ms=_elapsed_ms(start)
        )
    except MalformedResponseError as e:
        logger.warning("Malformed model output during %s: %s | raw=%r", e.stage, e, e.raw)
        return AnalysisOutcome(
            status="malformed", stage=e.stage, message=str(e), elapsed_ms=_elapsed_ms(start)
        )

    return AnalysisOutcome(
        status="ok",
        record=result.record,
        origin=result.origin,
        exact_digest=result.exact_digest,
        confidence=result.record.confidence,
        elapsed_ms=_elapsed_ms(start),
    )


async def purge(
    coordinator: CacheCoordinator | None = None,
    *,
    everything: bool = False,
    older_than_days: float | None = None,
    category: str | None = None,
    calories_above: float | None = None,
) -> int:
    """Apply exactly one purge criterion to both tiers.

    Returns:
        Total number of entries removed across tiers.

    Raises:
        ValueError: If zero or several criteria are given.
    """
    given = [
        everything,
        older_than_days is not None,
        category is not None,
        calories_above is not None,
    ]
    if sum(given) != 1:
        raise ValueError("Specify exactly one purge criterion")

    coordinator = coordinator or build_coordinator()
    if everything:
        removed = await coordinator.purge_all()
    elif older_than_days is not None:
        removed = await coordinator.purge_older_than(older_than_days)
    elif category is not None:
        removed = await coordinator.purge_by_category(category)
    else:
        removed = await coordinator.purge_above_calories(calories_above)  # type: ignore[arg-type]

    logger.info("Purge removed %d entries", removed)
    return removed


async def cache_stats(coordinator: CacheCoordinator | None = None) -> dict[str, CacheStats]:
    """Statistics for both tiers, keyed by tier name."""
    coordinator = coordinator or build_coordinator()
    return await coordinator.stats()


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
