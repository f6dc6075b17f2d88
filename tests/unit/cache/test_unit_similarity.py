# tests/unit/cache/test_unit_similarity.py — v1
"""Tests for cache/similarity.py — signature distance and ranking."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from bitecache.cache.models import CacheEntry
from bitecache.cache.similarity import find_similar, rank_similar, signature_distance

_T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _entry(digest: str, fingerprint: str | None, record, age_hours: int = 0) -> CacheEntry:
    return CacheEntry(
        exact_digest=digest,
        fingerprint=fingerprint,
        record=record,
        created_at=_T0 - timedelta(hours=age_hours),
    )


class TestSignatureDistance:
    def test_identical(self):
        assert signature_distance("abcdef0123456789", "abcdef0123456789") == 0

    def test_counts_mismatched_positions(self):
        assert signature_distance("0000000000000000", "0000000000000fff") == 3

    def test_length_difference_counts(self):
        assert signature_distance("abcd", "abcdef") == 2
        assert signature_distance("", "abc") == 3

    def test_symmetric(self):
        assert signature_distance("a1b2", "a1c3") == signature_distance("a1c3", "a1b2")


class TestFindSimilar:
    def test_threshold_is_inclusive(self, sample_record):
        entries = [
            _entry("d1", "0000000000000000", sample_record),
            _entry("d2", "00000000000fffff", sample_record),
            _entry("d3", "0000000000ffffff", sample_record),
        ]
        found = find_similar("0000000000000000", entries, threshold=5, limit=5)
        assert [e.exact_digest for e in found] == ["d1", "d2"]

    def test_ordered_by_distance(self, sample_record):
        entries = [
            _entry("far", "00000000000000ff", sample_record),
            _entry("near", "000000000000000f", sample_record),
            _entry("same", "0000000000000000", sample_record),
        ]
        found = find_similar("0000000000000000", entries, threshold=5, limit=5)
        assert [e.exact_digest for e in found] == ["same", "near", "far"]

    def test_ties_prefer_most_recent(self, sample_record):
        entries = [
            _entry("old", "000000000000000f", sample_record, age_hours=5),
            _entry("new", "00000000000000f0", sample_record, age_hours=1),
        ]
        found = find_similar("0000000000000000", entries, threshold=5, limit=5)
        assert [e.exact_digest for e in found] == ["new", "old"]

    def test_limit(self, sample_record):
        entries = [_entry(f"d{i}", "0000000000000000", sample_record, i) for i in range(8)]
        assert len(find_similar("0000000000000000", entries, threshold=5, limit=3)) == 3
        assert find_similar("0000000000000000", entries, threshold=5, limit=0) == []

    def test_skips_entries_without_fingerprint(self, sample_record):
        entries = [_entry("d1", None, sample_record)]
        assert find_similar("0000000000000000", entries, threshold=5, limit=5) == []

    def test_rank_reports_distance(self, sample_record):
        entries = [_entry("d1", "00000000000000ff", sample_record)]
        ranked = rank_similar("0000000000000000", entries, threshold=5, limit=5)
        assert ranked[0][0] == 2
        assert ranked[0][1].exact_digest == "d1"
