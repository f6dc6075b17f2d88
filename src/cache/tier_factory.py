# src/cache/tier_factory.py — v1
"""Factories for the two cache tiers."""

from __future__ import annotations

from bitecache.cache.local_tier import LocalTier
from bitecache.cache.persistent_tier import PersistentTier
from bitecache.config.settings import Settings


def create_local_tier(settings: Settings | None = None) -> LocalTier:
    """Instantiate the local tier.

    Args:
        settings: Application settings. Defaults to an in-memory tier.

    Returns:
        LocalTier, file-backed when ``local_cache_path`` is set.
    """
    if settings is None:
        return LocalTier()
    return LocalTier(
        path=settings.local_cache_path,
        max_entries=settings.local_cache_max_entries,
        expiry_days=settings.local_cache_expiry_days,
    )


def create_persistent_tier(settings: Settings | None = None) -> PersistentTier:
    """Instantiate the persistent tier.

    Args:
        settings: Application settings. Defaults to an in-memory database.

    Returns:
        PersistentTier backed by ``persistent_db_path``.
    """
    if settings is None:
        return PersistentTier()
    return PersistentTier(db_path=settings.persistent_db_path)
