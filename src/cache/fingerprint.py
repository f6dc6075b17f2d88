# src/cache/fingerprint.py — v3
"""Perceptual fingerprint ("blur signature") of a dish photo.

The signature is a DCT-based perceptual hash:

- Decode, convert to grayscale and resize to 32×32 pixels.
- Apply a 2D DCT (type II) over the 32×32 matrix.
- Keep the top-left 8×8 low-frequency block, DC term included.
- Set a bit to 1 when ``coeff > median`` of the block, else 0.
- Encode the 64 bits as a 16-character lowercase hex string.

Recompression, mild cropping and lighting changes move few low-frequency
coefficients across the median, so near-duplicates differ in few hex
positions while unrelated photos differ in most of them.
"""

from __future__ import annotations

import io
import logging
from typing import Final

import numpy as np
from PIL import Image, UnidentifiedImageError

from bitecache.core.errors import DecodeError

logger = logging.getLogger(__name__)

FINGERPRINT_ALGO: Final[str] = "dct-phash64-hex16"
FINGERPRINT_LENGTH: Final[int] = 16

_GRID_SIZE: Final[int] = 32
_REDUCED_SIZE: Final[int] = 8
_DCT_MATRIX: np.ndarray | None = None


def _get_dct_matrix(size: int) -> np.ndarray:
    """Return a cached orthonormal DCT-II transform matrix of the given size."""
    global _DCT_MATRIX
    if _DCT_MATRIX is not None and _DCT_MATRIX.shape == (size, size):
        return _DCT_MATRIX

    n = np.arange(size, dtype=np.float64)
    k = n[:, None]
    mat = np.cos((2.0 * n + 1.0) * k * np.pi / (2.0 * size))
    mat[0, :] *= np.sqrt(1.0 / size)
    mat[1:, :] *= np.sqrt(2.0 / size)

    _DCT_MATRIX = mat
    return mat


def decode_image(data: bytes) -> Image.Image:
    """Decode image bytes with Pillow, raising DecodeError on failure."""
    if not data:
        raise DecodeError("Empty image payload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (
        UnidentifiedImageError,
        OSError,
        ValueError,
        SyntaxError,
        Image.DecompressionBombError,
    ) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e
    return image


def fingerprint_image(image: Image.Image) -> str:
    """Compute the 16-character perceptual signature of a decoded image."""
    gray = image.convert("L").resize((_GRID_SIZE, _GRID_SIZE), Image.Resampling.LANCZOS)
    pixels = np.asarray(gray, dtype=np.float64)

    dct_mat = _get_dct_matrix(_GRID_SIZE)
    # 2D DCT: C * A * C^T
    dct = dct_mat @ pixels @ dct_mat.T

    low_freq = dct[:_REDUCED_SIZE, :_REDUCED_SIZE]
    median = np.median(low_freq)

    value = 0
    for bit in (low_freq > median).flatten():
        value = (value << 1) | int(bit)

    return f"{value:0{FINGERPRINT_LENGTH}x}"


def compute_fingerprint(data: bytes) -> str:
    """Decode *data* and return its perceptual signature.

    Raises:
        DecodeError: If the bytes are not a decodable image.
    """
    image = decode_image(data)
    signature = fingerprint_image(image)
    logger.debug("Fingerprint %s for %d-byte image", signature, len(data))
    return signature
