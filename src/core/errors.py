# src/core/errors.py — v1
"""Error taxonomy shared by the cache tiers, the pipeline and the facade.

Tier-level errors are absorbed by the coordinator (fail open to a miss).
Pipeline-level errors propagate to the caller unchanged so that "not food",
"service unavailable" and "bad model output" stay distinguishable.
"""

from __future__ import annotations


class BiteCacheError(Exception):
    """Base class for all bitecache errors."""


class DecodeError(BiteCacheError):
    """Image bytes could not be decoded into pixels."""


class StorageError(BiteCacheError):
    """A cache tier failed to read or write its backing store."""


class PipelineError(BiteCacheError):
    """Base class for terminal analysis pipeline failures."""

    retryable: bool = False

    def __init__(self, message: str, stage: str | None = None) -> None:
        self.stage = stage
        super().__init__(message)


class NotFoodError(PipelineError):
    """The identification model judged the photo not to be a dish."""

    def __init__(self, confidence: float, stage: str | None = "identify") -> None:
        self.confidence = confidence
        super().__init__(
            f"Image does not appear to be a dish (confidence={confidence:.2f})",
            stage=stage,
        )


class ModelUnavailableError(PipelineError):
    """Transport failure or timeout while calling a model."""

    retryable = True


class MalformedResponseError(PipelineError):
    """Model output failed JSON parsing or structural validation."""

    retryable = True

    def __init__(
        self, message: str, stage: str | None = None, raw: str | None = None
    ) -> None:
        self.raw = raw
        super().__init__(message, stage=stage)


class UnsupportedMediaError(BiteCacheError):
    """Upload is not a PNG or JPEG image."""

    def __init__(self, media_type: str | None) -> None:
        self.media_type = media_type
        super().__init__(
            f"Unsupported media type: {media_type or 'unknown'} (expected PNG or JPEG)"
        )
