# src/pipeline/analysis_pipeline.py — v1
"""Three-stage dish analysis: Identify → Detail → Validate.

Identify sends the photo to a vision model and rejects non-food images.
Detail asks a text model for ingredients, nutrition, preparation and
enrichment of the identified dish. Validate assembles an AnalysisRecord,
filling optional enrichment with conservative defaults. Any stage failure
is terminal; there are no retries inside the pipeline and no partial
record is ever returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from bitecache.core.errors import (
    MalformedResponseError,
    ModelUnavailableError,
    NotFoodError,
)
from bitecache.core.media import sniff_media_type
from bitecache.core.models import (
    AnalysisRecord,
    ComplianceNotes,
    DietaryFlags,
    HealthScore,
    Preparation,
    is_high_protein,
    references_ingredient,
)
from bitecache.llm.models import ImageInput, LLMResponse, Message
from bitecache.logging.context import set_stage
from bitecache.pipeline.parsing import (
    DetailPayload,
    IdentificationPayload,
    SubjectGuessPayload,
    parse_payload,
)
from bitecache.pipeline.prompts import (
    DETAIL_SYSTEM,
    IDENTIFY_PROMPT,
    IDENTIFY_SYSTEM,
    SUBJECT_GUESS_PROMPT,
    build_detail_prompt,
)

if TYPE_CHECKING:
    from bitecache.config.settings import Settings
    from bitecache.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

IDENTIFY_TEMPERATURE = 0.2
IDENTIFY_MAX_TOKENS = 150
DETAIL_TEMPERATURE = 0.3
DETAIL_MAX_TOKENS = 1000
GUESS_TEMPERATURE = 0.0
GUESS_MAX_TOKENS = 40

DEFAULT_CATEGORY = "Mixed"


class Identification(BaseModel):
    """Outcome of the identify stage for a photo judged to be food."""

    model_config = ConfigDict(frozen=True)

    subject_name: str
    category: str
    confidence: float


class AnalysisPipeline:
    """Turn an image into a validated AnalysisRecord using two models."""

    def __init__(
        self,
        identifier: BaseLLMClient,
        detailer: BaseLLMClient,
        subject_guesser: BaseLLMClient | None = None,
        timeout_s: float = 60.0,
        confidence_threshold: float = 0.5,
    ) -> None:
        self._identifier = identifier
        self._detailer = detailer
        self._subject_guesser = subject_guesser
        self._timeout_s = timeout_s
        self._confidence_threshold = confidence_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> AnalysisPipeline:
        """Wire per-component clients through the routing cascade."""
        from bitecache.llm.client_factory import create_component_client

        return cls(
            identifier=create_component_client("identifier", settings),
            detailer=create_component_client("detailer", settings),
            subject_guesser=create_component_client("subject_guesser", settings),
            timeout_s=settings.model_timeout_s,
            confidence_threshold=settings.food_confidence_threshold,
        )

    @property
    def can_guess_subject(self) -> bool:
        return self._subject_guesser is not None

    async def run(self, image_bytes: bytes, media_type: str | None = None) -> AnalysisRecord:
        """Run all three stages. Raises a PipelineError subclass on failure."""
        image = _image_input(image_bytes, media_type)
        start = time.monotonic()
        try:
            identification = await self.identify(image)
            payload = await self.detail(identification)
            record = self.validate(identification, payload)
        finally:
            set_stage(None)

        logger.info(
            "Analyzed %r (%s) in %.0f ms",
            record.subject_name,
            record.category,
            (time.monotonic() - start) * 1000,
        )
        return record

    async def identify(self, image: ImageInput) -> Identification:
        set_stage("identify")
        response = await self._bounded(
            self._identifier.complete_with_vision(
                messages=[Message(role="user", content=IDENTIFY_PROMPT)],
                images=[image],
                system=IDENTIFY_SYSTEM,
                max_tokens=IDENTIFY_MAX_TOKENS,
                temperature=IDENTIFY_TEMPERATURE,
                response_format=IdentificationPayload,
            ),
            stage="identify",
        )
        payload = parse_payload(response.content, IdentificationPayload, "identify")

        if not payload.is_food or payload.confidence < self._confidence_threshold:
            logger.info(
                "Rejected as not food (is_food=%s, confidence=%.2f)",
                payload.is_food,
                payload.confidence,
            )
            raise NotFoodError(payload.confidence)

        subject = (payload.subject_name or "").strip()
        if not subject:
            raise MalformedResponseError(
                "identify response has no dish name", stage="identify"
            )
        category = (payload.category or "").strip() or DEFAULT_CATEGORY
        return Identification(
            subject_name=subject, category=category, confidence=payload.confidence
        )

    async def detail(self, identification: Identification) -> DetailPayload:
        set_stage("detail")
        prompt = build_detail_prompt(identification.subject_name, identification.category)
        response = await self._bounded(
            self._detailer.complete(
                messages=[Message(role="user", content=prompt)],
                system=DETAIL_SYSTEM,
                max_tokens=DETAIL_MAX_TOKENS,
                temperature=DETAIL_TEMPERATURE,
                response_format=DetailPayload,
            ),
            stage="detail",
        )
        return parse_payload(response.content, DetailPayload, "detail")

    def validate(
        self, identification: Identification, payload: DetailPayload
    ) -> AnalysisRecord:
        """Assemble the record, enforcing required fields and ingredient grounding."""
        set_stage("validate")
        ingredients = tuple(
            item.strip() for item in (payload.ingredients or []) if item and item.strip()
        )
        if not ingredients:
            raise MalformedResponseError("detail response has no ingredients", stage="validate")
        if payload.nutrition is None:
            raise MalformedResponseError("detail response has no nutrition", stage="validate")

        prep = payload.preparation
        steps = tuple(s.strip() for s in (prep.steps if prep else []) if s and s.strip())
        if prep is None or not steps:
            raise MalformedResponseError(
                "detail response has no preparation steps", stage="validate"
            )
        preparation = Preparation(
            servings=prep.servings,
            prep_minutes=prep.prep_minutes,
            cook_minutes=prep.cook_minutes,
            steps=steps,
        )

        flags = (payload.dietary_flags or DietaryFlags()).model_copy(
            update={"high_protein": is_high_protein(payload.nutrition)}
        )

        compliance = ComplianceNotes()
        if payload.compliance is not None:
            allergens = set()
            dropped = []
            for allergen in payload.compliance.allergens:
                if references_ingredient(allergen, ingredients):
                    allergens.add(allergen.strip().lower())
                elif allergen.strip():
                    dropped.append(allergen.strip().lower())
                    logger.debug("Dropped allergen %r not found in ingredients", allergen)
            note = payload.compliance.note or None
            if note and any(term in note.lower() for term in dropped):
                logger.debug("Dropped compliance note naming an ungrounded allergen")
                note = None
            compliance = ComplianceNotes(
                permitted=payload.compliance.permitted,
                note=note,
                allergens=frozenset(allergens),
            )

        return AnalysisRecord(
            subject_name=identification.subject_name,
            category=identification.category,
            ingredients=ingredients,
            nutrition=payload.nutrition,
            preparation=preparation,
            dietary_flags=flags,
            compliance=compliance,
            health_score=payload.health_score or HealthScore(),
            confidence=identification.confidence,
        )

    async def guess_subject(
        self, image_bytes: bytes, media_type: str | None = None
    ) -> str | None:
        """Cheap dish-name guess used for semantic lookup. None when unknown."""
        if self._subject_guesser is None:
            return None
        set_stage("guess")
        try:
            response = await self._bounded(
                self._subject_guesser.complete_with_vision(
                    messages=[Message(role="user", content=SUBJECT_GUESS_PROMPT)],
                    images=[_image_input(image_bytes, media_type)],
                    max_tokens=GUESS_MAX_TOKENS,
                    temperature=GUESS_TEMPERATURE,
                    response_format=SubjectGuessPayload,
                ),
                stage="guess",
            )
            payload = parse_payload(response.content, SubjectGuessPayload, "guess")
        finally:
            set_stage(None)
        subject = (payload.subject_name or "").strip()
        return subject or None

    async def _bounded(self, call: Awaitable[LLMResponse], stage: str) -> LLMResponse:
        """Await a model call under the configured timeout."""
        try:
            return await asyncio.wait_for(call, timeout=self._timeout_s)
        except asyncio.TimeoutError as e:
            raise ModelUnavailableError(
                f"{stage} model call timed out after {self._timeout_s:g}s", stage=stage
            ) from e
        except ModelUnavailableError as e:
            if e.stage is None:
                e.stage = stage
            raise
        except ConnectionError as e:
            raise ModelUnavailableError(f"{stage} model unreachable: {e}", stage=stage) from e


def _image_input(image_bytes: bytes, media_type: str | None) -> ImageInput:
    return ImageInput(
        data=image_bytes,
        media_type=media_type or sniff_media_type(image_bytes) or "image/jpeg",
    )
