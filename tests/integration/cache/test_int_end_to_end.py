# tests/integration/cache/test_int_end_to_end.py — v1
"""End-to-end resolution across both file-backed tiers.

Scripted models, real tiers on disk. No external services required.
"""

from __future__ import annotations

import pytest

from bitecache.api.facade import analyze_image, purge
from bitecache.cache.coordinator import CacheCoordinator
from bitecache.cache.local_tier import LocalTier
from bitecache.cache.models import ResolveOrigin
from bitecache.cache.persistent_tier import PersistentTier
from bitecache.config.settings import load_settings
from bitecache.pipeline.analysis_pipeline import AnalysisPipeline

pytestmark = [pytest.mark.integration]


@pytest.fixture
def models(mock_llm, payloads):
    identifier = mock_llm(default_response=payloads.identify())
    detailer = mock_llm(default_response=payloads.detail(), vision=False)
    guesser = mock_llm(default_response='{"dishName": "spaghetti carbonara"}')
    return identifier, detailer, guesser


@pytest.fixture
def settings(tmp_cache_dir):
    return load_settings(
        _env_file=None,
        local_cache_path=tmp_cache_dir / "local.json",
        persistent_db_path=tmp_cache_dir / "analyses.db",
    )


def _device(settings, pipeline, local_path=None) -> CacheCoordinator:
    """One client: its own local tier, the shared persistent database."""
    return CacheCoordinator(
        LocalTier(path=local_path or settings.local_cache_path),
        PersistentTier(db_path=settings.persistent_db_path),
        pipeline,
    )


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, settings, models, dish_png, dish_jpeg_copy, tmp_cache_dir):
        identifier, detailer, guesser = models
        pipeline = AnalysisPipeline(identifier, detailer, guesser, timeout_s=5)
        phone = _device(settings, pipeline)

        # Cold: generated and written to both tiers.
        first = await analyze_image(dish_png, settings=settings, coordinator=phone)
        assert first.origin is ResolveOrigin.GENERATED
        assert first.record.dietary_flags.high_protein is True
        assert first.record.compliance.allergens == frozenset({"egg", "pecorino"})

        # Same bytes again.
        again = await analyze_image(dish_png, settings=settings, coordinator=phone)
        assert again.origin is ResolveOrigin.LOCAL_EXACT
        assert again.record == first.record

        # Recompressed upload of the same photo.
        similar = await analyze_image(dish_jpeg_copy, settings=settings, coordinator=phone)
        assert similar.origin is ResolveOrigin.LOCAL_SIMILAR
        assert similar.record == first.record
        assert identifier.call_count == 1

        # Process restart: the local document survives on disk.
        restarted = _device(settings, pipeline)
        after_restart = await analyze_image(dish_png, settings=settings, coordinator=restarted)
        assert after_restart.origin is ResolveOrigin.LOCAL_EXACT

        # A second device with an empty local tier.
        tablet = _device(settings, pipeline, local_path=tmp_cache_dir / "tablet.json")
        remote = await analyze_image(dish_png, settings=settings, coordinator=tablet)
        assert remote.origin is ResolveOrigin.REMOTE_EXACT

        tablet_2 = _device(settings, pipeline, local_path=tmp_cache_dir / "tablet2.json")
        semantic = await analyze_image(dish_jpeg_copy, settings=settings, coordinator=tablet_2)
        assert semantic.origin is ResolveOrigin.REMOTE_SEMANTIC
        assert semantic.record.subject_name == "Spaghetti Carbonara"

        assert identifier.call_count == 1
        assert detailer.call_count == 1

        for device in (phone, restarted, tablet, tablet_2):
            device.persistent.close()

    @pytest.mark.asyncio
    async def test_not_food_leaves_tiers_empty(self, settings, models, payloads, other_dish_png):
        identifier, detailer, guesser = models
        identifier.set_default(payloads.identify(dish="Laptop", confidence=0.05, is_food=False))
        guesser.set_default('{"dishName": "laptop"}')
        device = _device(settings, AnalysisPipeline(identifier, detailer, guesser))

        outcome = await analyze_image(other_dish_png, settings=settings, coordinator=device)

        assert outcome.status == "not_food"
        stats = await device.stats()
        assert stats["local"].total_entries == 0
        assert stats["persistent"].total_entries == 0
        assert detailer.call_count == 0
        device.persistent.close()

    @pytest.mark.asyncio
    async def test_purge_reaches_both_tiers(self, settings, models, dish_png):
        device = _device(settings, AnalysisPipeline(*models))
        await analyze_image(dish_png, settings=settings, coordinator=device)

        assert await purge(device, calories_above=600) == 2

        reopened = _device(settings, AnalysisPipeline(*models))
        stats = await reopened.stats()
        assert stats["local"].total_entries == 0
        assert stats["persistent"].total_entries == 0
        device.persistent.close()
        reopened.persistent.close()
