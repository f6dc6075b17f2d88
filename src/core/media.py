# src/core/media.py — v1
"""Image media type sniffing from magic bytes."""

from __future__ import annotations

SUPPORTED_MEDIA_TYPES = frozenset({"image/png", "image/jpeg"})

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_media_type(data: bytes) -> str | None:
    """Return the MIME type recognized from the leading bytes, if any."""
    for magic, media_type in _SIGNATURES:
        if data.startswith(magic):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def is_supported(data: bytes) -> bool:
    return sniff_media_type(data) in SUPPORTED_MEDIA_TYPES
