# src/cache/compression.py — v1
"""Shrink oversized uploads before they are hashed and analyzed.

Large photos are resized to fit a bounding box (aspect ratio preserved)
and re-encoded as JPEG. Small inputs are returned untouched so that their
digest stays stable across repeated uploads.
"""

from __future__ import annotations

import io
import logging

from PIL import Image

from bitecache.cache.fingerprint import decode_image

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 800
DEFAULT_QUALITY = 85
DEFAULT_MIN_BYTES = 200 * 1024


def compress_image(
    data: bytes,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
    min_bytes: int = DEFAULT_MIN_BYTES,
) -> bytes:
    """Return a JPEG re-encoding of *data* if it exceeds *min_bytes*.

    Raises:
        DecodeError: If *data* is larger than *min_bytes* but not an image.
    """
    if len(data) <= min_bytes:
        return data

    image = decode_image(data)
    original_size = image.size
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    image.thumbnail((max_dimension, max_dimension), resample=Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    compressed = buffer.getvalue()

    if len(compressed) >= len(data):
        logger.debug("Compression did not shrink %d-byte image, keeping original", len(data))
        return data

    logger.info(
        "Compressed image %dx%d → %dx%d (%d → %d bytes)",
        original_size[0],
        original_size[1],
        image.size[0],
        image.size[1],
        len(data),
        len(compressed),
    )
    return compressed
