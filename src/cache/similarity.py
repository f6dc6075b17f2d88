# src/cache/similarity.py — v1
"""Signature distance and ranked similarity filtering.

A linear scan over the candidates handed in. LocalTier is capacity-bounded
so this stays cheap; a large shared store would need an approximate
nearest-neighbour index instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, TypeVar


class _Fingerprinted(Protocol):
    @property
    def fingerprint(self) -> str | None: ...

    @property
    def created_at(self) -> datetime: ...


T = TypeVar("T", bound=_Fingerprinted)


def signature_distance(a: str, b: str) -> int:
    """Character-position mismatches plus the length difference.

    Truncated signatures count as dissimilar instead of raising.
    """
    common = min(len(a), len(b))
    mismatches = sum(1 for i in range(common) if a[i] != b[i])
    return mismatches + abs(len(a) - len(b))


def rank_similar(
    signature: str,
    candidates: Iterable[T],
    threshold: int,
    limit: int,
) -> list[tuple[int, T]]:
    """Return ``(distance, candidate)`` pairs within *threshold*, best first.

    Sorted ascending by distance, ties by recency (most recent first), then
    by input order, so results are deterministic for a fixed input.
    """
    if limit <= 0:
        return []

    scored: list[tuple[int, float, int, T]] = []
    for position, candidate in enumerate(candidates):
        if not candidate.fingerprint:
            continue
        distance = signature_distance(signature, candidate.fingerprint)
        if distance <= threshold:
            scored.append(
                (distance, -candidate.created_at.timestamp(), position, candidate)
            )

    scored.sort(key=lambda item: item[:3])
    return [(distance, candidate) for distance, _, _, candidate in scored[:limit]]


def find_similar(
    signature: str,
    candidates: Iterable[T],
    threshold: int,
    limit: int,
) -> list[T]:
    """Candidates within *threshold* of *signature*, ranked best first."""
    return [candidate for _, candidate in rank_similar(signature, candidates, threshold, limit)]
