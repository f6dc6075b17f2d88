# src/api/models.py — v2
"""API-level models returned by the facade."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from bitecache.cache.models import ResolveOrigin
from bitecache.core.models import AnalysisRecord

OutcomeStatus = Literal["ok", "not_food", "unavailable", "malformed"]


class AnalysisOutcome(BaseModel):
    """Result of analyze_image(): a record, or the reason there is none."""

    status: OutcomeStatus
    record: AnalysisRecord | None = None
    origin: ResolveOrigin | None = None
    exact_digest: str | None = None
    confidence: float | None = None
    stage: str | None = None
    message: str | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def cached(self) -> bool:
        return self.origin is not None and self.origin is not ResolveOrigin.GENERATED
