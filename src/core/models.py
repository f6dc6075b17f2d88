# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types — all imports come from core.models.
AnalysisRecord is the unit of value stored by both cache tiers.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

HIGH_PROTEIN_GRAMS = 20.0
BASELINE_HEALTH_SCORE = 50.0


# === NUTRITION & PREPARATION ===


class Nutrition(BaseModel):
    """Per-serving macronutrients. All values are non-negative."""

    model_config = ConfigDict(frozen=True)

    calories: float = Field(ge=0)
    protein_g: float = Field(ge=0)
    carbs_g: float = Field(ge=0)
    fat_g: float = Field(ge=0)


class Preparation(BaseModel):
    """Recipe outline: servings, timings and ordered instructions."""

    model_config = ConfigDict(frozen=True)

    servings: int = Field(default=1, ge=1)
    prep_minutes: int = Field(default=0, ge=0)
    cook_minutes: int = Field(default=0, ge=0)
    steps: tuple[str, ...] = Field(min_length=1)

    @property
    def total_minutes(self) -> int:
        return self.prep_minutes + self.cook_minutes


# === ENRICHMENT ===


class DietaryFlags(BaseModel):
    """Dietary tags derived from nutrition and ingredients."""

    model_config = ConfigDict(frozen=True)

    high_protein: bool = False
    contains_gluten: bool = False
    contains_dairy: bool = False
    vegan: bool = False
    keto: bool = False


class ComplianceNotes(BaseModel):
    """Dietary-law compliance plus allergens found in the ingredients."""

    model_config = ConfigDict(frozen=True)

    permitted: bool = True
    note: str | None = None
    allergens: frozenset[str] = Field(default_factory=frozenset)


class HealthScore(BaseModel):
    """Three 0-100 scores summarizing how healthy the dish is."""

    model_config = ConfigDict(frozen=True)

    overall: float = Field(default=BASELINE_HEALTH_SCORE, ge=0, le=100)
    nutrient_density: float = Field(default=BASELINE_HEALTH_SCORE, ge=0, le=100)
    macro_balance: float = Field(default=BASELINE_HEALTH_SCORE, ge=0, le=100)


# === ANALYSIS RECORD ===


class AnalysisRecord(BaseModel):
    """Validated analysis of one dish photo. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    subject_name: str = Field(min_length=1)
    category: str = "Mixed"
    ingredients: tuple[str, ...] = Field(min_length=1)
    nutrition: Nutrition
    preparation: Preparation
    dietary_flags: DietaryFlags = Field(default_factory=DietaryFlags)
    compliance: ComplianceNotes = Field(default_factory=ComplianceNotes)
    health_score: HealthScore = Field(default_factory=HealthScore)
    confidence: float | None = Field(default=None, ge=0, le=1)

    @property
    def calories(self) -> float:
        return self.nutrition.calories


def is_high_protein(nutrition: Nutrition) -> bool:
    """High-protein holds exactly when a serving has at least 20 g protein."""
    return nutrition.protein_g >= HIGH_PROTEIN_GRAMS


def references_ingredient(term: str, ingredients: tuple[str, ...] | list[str]) -> bool:
    """Whether *term* names something present in the ingredient list."""
    needle = term.strip().lower()
    if not needle:
        return False
    for ingredient in ingredients:
        hay = ingredient.strip().lower()
        if needle in hay or (hay and hay in needle):
            return True
    return False
