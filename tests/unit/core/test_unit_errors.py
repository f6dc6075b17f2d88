# tests/unit/core/test_unit_errors.py — v1
"""Tests for core/errors.py — error taxonomy."""

from __future__ import annotations

from bitecache.core.errors import (
    BiteCacheError,
    DecodeError,
    MalformedResponseError,
    ModelUnavailableError,
    NotFoodError,
    PipelineError,
    StorageError,
    UnsupportedMediaError,
)


class TestTaxonomy:
    def test_hierarchy(self):
        for cls in (DecodeError, StorageError, PipelineError, UnsupportedMediaError):
            assert issubclass(cls, BiteCacheError)
        for cls in (NotFoodError, ModelUnavailableError, MalformedResponseError):
            assert issubclass(cls, PipelineError)

    def test_not_food_carries_confidence(self):
        err = NotFoodError(0.2)
        assert err.confidence == 0.2
        assert err.stage == "identify"
        assert "0.20" in str(err)
        assert err.retryable is False

    def test_retryable_flags(self):
        assert ModelUnavailableError("down").retryable is True
        assert MalformedResponseError("bad", stage="detail").retryable is True

    def test_malformed_keeps_raw(self):
        err = MalformedResponseError("bad", stage="detail", raw="<html>")
        assert err.stage == "detail"
        assert err.raw == "<html>"

    def test_unsupported_media(self):
        err = UnsupportedMediaError("image/gif")
        assert err.media_type == "image/gif"
        assert "image/gif" in str(err)
        assert "unknown" in str(UnsupportedMediaError(None))
