# src/pipeline/parsing.py — v1
"""Structured parsing of untrusted model output.

Model text is parsed as a JSON object (markdown code fences tolerated) and
validated against the payload models below. Anything non-conforming raises
MalformedResponseError instead of being coerced.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from bitecache.core.errors import MalformedResponseError
from bitecache.core.models import DietaryFlags, HealthScore, Nutrition

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)
_PREVIEW_CHARS = 300

P = TypeVar("P", bound=BaseModel)


class IdentificationPayload(BaseModel):
    """Identify-stage response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_food: bool = Field(default=True, alias="isFood")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, alias="confidenceFood")
    subject_name: str | None = Field(default=None, alias="dishName")
    category: str | None = Field(default=None, alias="cuisineType")


class SubjectGuessPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    subject_name: str | None = Field(default=None, alias="dishName")


class PreparationPayload(BaseModel):
    """Lenient preparation block; completeness is checked at validation."""

    model_config = ConfigDict(extra="ignore")

    servings: int = Field(default=1, ge=1)
    prep_minutes: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("prep_minutes", "prepMinutes")
    )
    cook_minutes: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("cook_minutes", "cookMinutes")
    )
    steps: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("steps", "instructions")
    )


class CompliancePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    permitted: bool = True
    note: str | None = None
    allergens: list[str] = Field(default_factory=list)


class DetailPayload(BaseModel):
    """Detail-stage response. Every block is optional at parse time."""

    model_config = ConfigDict(extra="ignore")

    ingredients: list[str] | None = None
    nutrition: Nutrition | None = None
    preparation: PreparationPayload | None = Field(
        default=None, validation_alias=AliasChoices("preparation", "recipe")
    )
    dietary_flags: DietaryFlags | None = None
    compliance: CompliancePayload | None = None
    health_score: HealthScore | None = None


def preview(text: str) -> str:
    """Shortened raw response for diagnostics."""
    text = text.strip()
    return text if len(text) <= _PREVIEW_CHARS else text[:_PREVIEW_CHARS] + "..."


def parse_json_object(text: str, stage: str) -> dict[str, Any]:
    """Parse model text as one JSON object."""
    cleaned = text.strip()
    fenced = _FENCE_RE.match(cleaned)
    if fenced:
        cleaned = fenced.group(1)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError(
                f"{stage} response is not JSON", stage=stage, raw=preview(text)
            ) from None
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"{stage} response is not valid JSON: {e}", stage=stage, raw=preview(text)
            ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{stage} response is not a JSON object", stage=stage, raw=preview(text)
        )
    return data


def parse_payload(text: str, model: type[P], stage: str) -> P:
    """Parse and validate model text into a payload model."""
    data = parse_json_object(text, stage)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"{stage} response failed validation: {e.error_count()} error(s)",
            stage=stage,
            raw=preview(text),
        ) from e
