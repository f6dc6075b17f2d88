# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides sample records, a scripted mock LLM client, PIL-generated dish
images and temp paths. No external services — all model I/O is mocked.
"""

from __future__ import annotations

import asyncio
import io
import json
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from PIL import Image
from pydantic import BaseModel

from bitecache.core.models import (
    AnalysisRecord,
    ComplianceNotes,
    DietaryFlags,
    HealthScore,
    Nutrition,
    Preparation,
)
from bitecache.llm.base_client import BaseLLMClient
from bitecache.llm.models import ImageInput, LLMResponse, Message


# === MOCK LLM CLIENT ===


class MockLLMClient(BaseLLMClient):
    """Scripted LLM client.

    Queued responses are consumed in order, then the default is returned.
    A queued BaseException is raised instead of returned; a queued callable
    is awaited (use it to simulate a hanging model).
    """

    def __init__(self, default_response: str = '{"result": "mock"}', vision: bool = True):
        self._default_response = default_response
        self._response_queue: list[Any] = []
        self._vision = vision
        self.calls: list[dict[str, Any]] = []

    def set_responses(self, *responses: Any) -> None:
        self._response_queue = list(responses)

    def set_default(self, response: str) -> None:
        self._default_response = response

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        self.calls.append({
            "kind": "text", "messages": messages, "system": system,
            "max_tokens": max_tokens, "temperature": temperature,
            "response_format": response_format,
        })
        return await self._respond()

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        self.calls.append({
            "kind": "vision", "messages": messages, "images": images,
            "system": system, "max_tokens": max_tokens,
            "temperature": temperature, "response_format": response_format,
        })
        return await self._respond()

    async def _respond(self) -> LLMResponse:
        item = self._response_queue.pop(0) if self._response_queue else self._default_response
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = await item()
        return LLMResponse(
            content=item, input_tokens=50, output_tokens=len(item) // 4,
            model="mock-model", provider="mock", latency_ms=10,
        )

    @property
    def supports_vision(self) -> bool:
        return self._vision

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "mock-model"


async def hang() -> str:
    """Model call that never returns in test time."""
    await asyncio.sleep(3600)
    return "{}"


# === FIXTURES: Model payloads ===


def identify_json(
    dish: str = "Spaghetti Carbonara",
    cuisine: str = "Italian",
    confidence: float = 0.92,
    is_food: bool = True,
) -> str:
    return json.dumps({
        "isFood": is_food,
        "confidenceFood": confidence,
        "dishName": dish,
        "cuisineType": cuisine,
    })


DETAIL_PAYLOAD: dict[str, Any] = {
    "ingredients": [
        "spaghetti", "guanciale", "egg yolks", "pecorino romano",
        "black pepper", "salt",
    ],
    "nutrition": {"calories": 650, "protein_g": 28, "carbs_g": 72, "fat_g": 26},
    "preparation": {
        "servings": 2,
        "prep_minutes": 10,
        "cook_minutes": 15,
        "steps": [
            "Boil the spaghetti in salted water.",
            "Crisp the guanciale in a pan.",
            "Whisk egg yolks with grated pecorino and pepper.",
            "Toss pasta with guanciale off the heat, then stir in the egg mixture.",
        ],
    },
    "dietary_flags": {
        "high_protein": False,
        "contains_gluten": True,
        "contains_dairy": True,
        "vegan": False,
        "keto": False,
    },
    "compliance": {
        "permitted": False,
        "note": "Contains guanciale (pork).",
        "allergens": ["Egg", "pecorino", "shellfish"],
    },
    "health_score": {"overall": 45, "nutrient_density": 50, "macro_balance": 40},
}


def detail_json(**overrides: Any) -> str:
    payload = {**DETAIL_PAYLOAD, **overrides}
    return json.dumps({k: v for k, v in payload.items() if v is not None})


@pytest.fixture
def mock_llm() -> type[MockLLMClient]:
    return MockLLMClient


@pytest.fixture
def payloads() -> Any:
    """Namespace of payload builders for scripting mock models."""

    class _Payloads:
        identify = staticmethod(identify_json)
        detail = staticmethod(detail_json)
        detail_payload = DETAIL_PAYLOAD
        hang = staticmethod(hang)

    return _Payloads


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_record() -> AnalysisRecord:
    """Minimal valid AnalysisRecord."""
    return AnalysisRecord(
        subject_name="Spaghetti Carbonara",
        category="Italian",
        ingredients=("spaghetti", "guanciale", "egg yolks", "pecorino romano"),
        nutrition=Nutrition(calories=650, protein_g=28, carbs_g=72, fat_g=26),
        preparation=Preparation(
            servings=2,
            prep_minutes=10,
            cook_minutes=15,
            steps=("Boil pasta.", "Crisp guanciale.", "Combine with eggs and cheese."),
        ),
        dietary_flags=DietaryFlags(high_protein=True, contains_gluten=True, contains_dairy=True),
        compliance=ComplianceNotes(allergens=frozenset({"egg"})),
        health_score=HealthScore(overall=45, nutrient_density=50, macro_balance=40),
        confidence=0.92,
    )


@pytest.fixture
def record_factory(sample_record: AnalysisRecord) -> Callable[..., AnalysisRecord]:
    """Build variants of sample_record with field overrides."""

    def _make(
        subject_name: str = "Spaghetti Carbonara",
        category: str = "Italian",
        calories: float = 650,
    ) -> AnalysisRecord:
        return sample_record.model_copy(
            update={
                "subject_name": subject_name,
                "category": category,
                "nutrition": sample_record.nutrition.model_copy(update={"calories": calories}),
            }
        )

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# === FIXTURES: Images ===


def make_dish_image(seed: int, size: int = 256) -> Image.Image:
    """Smooth synthetic photo: seeded 8×8 color grid upscaled bicubically."""
    rng = np.random.default_rng(seed)
    grid = rng.integers(0, 256, size=(8, 8, 3), dtype=np.uint8)
    return Image.fromarray(grid).resize((size, size), Image.Resampling.BICUBIC)


def encode(image: Image.Image, fmt: str = "PNG", **params: Any) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


@pytest.fixture
def dish_png() -> bytes:
    return encode(make_dish_image(seed=7))


@pytest.fixture
def dish_jpeg_copy() -> bytes:
    """Same picture as dish_png after lossy JPEG recompression."""
    return encode(make_dish_image(seed=7), "JPEG", quality=90)


@pytest.fixture
def other_dish_png() -> bytes:
    return encode(make_dish_image(seed=1234))


@pytest.fixture
def large_noise_png() -> bytes:
    """Incompressible 640×480 PNG, well above the 200 KB compression floor."""
    rng = np.random.default_rng(99)
    pixels = rng.integers(0, 256, size=(480, 640, 3), dtype=np.uint8)
    return encode(Image.fromarray(pixels))


# === FIXTURES: Temp dirs ===


@pytest.fixture
def tmp_cache_dir(tmp_path: Path) -> Path:
    """Temporary cache directory."""
    cache = tmp_path / "cache"
    cache.mkdir()
    return cache
