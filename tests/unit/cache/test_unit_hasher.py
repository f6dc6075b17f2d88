# tests/unit/cache/test_unit_hasher.py — v2
"""Tests for cache/hasher.py — exact content digest."""

from __future__ import annotations

import hashlib
import random

from bitecache.cache.hasher import DIGEST_LENGTH, content_digest


class TestContentDigest:
    def test_deterministic(self, dish_png):
        assert content_digest(dish_png) == content_digest(dish_png)

    def test_sha256_hex(self):
        assert content_digest(b"abc") == hashlib.sha256(b"abc").hexdigest()
        assert len(content_digest(b"abc")) == DIGEST_LENGTH

    def test_every_bit_flip_of_small_payload(self):
        original = bytes(range(32))
        digests = {content_digest(original)}
        for position in range(len(original)):
            for bit in range(8):
                mutated = bytearray(original)
                mutated[position] ^= 1 << bit
                digests.add(content_digest(bytes(mutated)))
        assert len(digests) == 1 + 32 * 8

    def test_sampled_single_byte_changes(self, dish_png):
        rng = random.Random(42)
        original = content_digest(dish_png)
        digests = set()
        for position in rng.sample(range(len(dish_png)), 300):
            mutated = bytearray(dish_png)
            mutated[position] ^= rng.randrange(1, 256)
            digest = content_digest(bytes(mutated))
            assert digest != original
            digests.add(digest)
        assert len(digests) == 300

    def test_empty_input(self):
        assert content_digest(b"") == hashlib.sha256(b"").hexdigest()
