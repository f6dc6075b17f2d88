# src/cache/base_tier.py — v2
"""Abstract cache tier interface shared by LocalTier and PersistentTier.

The coordinator only depends on this contract, so either tier can be
swapped for any bounded in-memory structure or transactional store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from bitecache.cache.models import CacheStats


class BaseTier(ABC):
    """Unified interface for cache tiers."""

    name: str = "tier"

    @abstractmethod
    async def lookup_exact(self, digest: str) -> Any | None:
        """Retrieve the entry stored for an exact content digest."""

    @abstractmethod
    async def delete_all(self) -> int:
        """Remove every entry. Returns the number removed."""

    @abstractmethod
    async def delete_older_than(self, days: float) -> int:
        """Remove entries older than *days*. Returns the number removed."""

    @abstractmethod
    async def delete_by_category(self, category: str) -> int:
        """Remove entries of a category (case-insensitive)."""

    @abstractmethod
    async def delete_by_calories_above(self, threshold: float) -> int:
        """Remove entries whose calories exceed *threshold*."""

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Aggregate statistics over live entries."""
