# src/cache/hasher.py — v1
"""Content-addressable digest of raw image bytes for exact-match lookup."""

from __future__ import annotations

import hashlib

DIGEST_ALGO = "sha256"
DIGEST_LENGTH = 64


def content_digest(data: bytes) -> str:
    """SHA-256 over the raw bytes as a 64-character lowercase hex string.

    Empty input is valid and yields the digest of the empty byte sequence.
    """
    return hashlib.sha256(data).hexdigest()
