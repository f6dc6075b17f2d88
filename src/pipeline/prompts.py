# src/pipeline/prompts.py — v1
"""Fixed instructions sent to the identification and detail models."""

from __future__ import annotations

IDENTIFY_SYSTEM = "You are a food identification AI. Return only valid JSON."

IDENTIFY_PROMPT = """Look at this image and identify ONLY:
1. Is this food? (true/false)
2. What is the SPECIFIC dish name?
3. What cuisine type is it?

Return ONLY this JSON format, nothing else:
{
  "isFood": boolean,
  "confidenceFood": number (0.0 to 1.0),
  "dishName": string (specific name like "Spaghetti Carbonara", "Pad Thai"),
  "cuisineType": string (like "Italian", "Thai", "American")
}

Be very specific with the dish name. No extra text, just JSON."""

SUBJECT_GUESS_PROMPT = """Name the dish in this photo.
Return ONLY this JSON: {"dishName": string}
Use the most common English name. No extra text."""

DETAIL_SYSTEM = "You are a professional chef and nutritionist. Return only valid JSON."

_DETAIL_TEMPLATE = """Generate nutrition, ingredients, recipe and dietary information for: "{subject}" ({category} cuisine).

Return ONLY this JSON format:
{{
  "ingredients": string[] (8-12 specific ingredients),
  "nutrition": {{
    "calories": number (per serving),
    "protein_g": number,
    "carbs_g": number,
    "fat_g": number
  }},
  "preparation": {{
    "servings": number,
    "prep_minutes": number,
    "cook_minutes": number,
    "steps": string[] (8-12 detailed cooking steps)
  }},
  "dietary_flags": {{
    "high_protein": boolean,
    "contains_gluten": boolean,
    "contains_dairy": boolean,
    "vegan": boolean,
    "keto": boolean
  }},
  "compliance": {{
    "permitted": boolean,
    "note": string or null,
    "allergens": string[]
  }},
  "health_score": {{
    "overall": number (0-100),
    "nutrient_density": number (0-100),
    "macro_balance": number (0-100)
  }}
}}

RULES:
- The ingredients list is the only source of truth.
- Dietary flags, compliance notes and allergens must be derived ONLY from the ingredients you list.
- Never mention an allergen or restricted item that is not in the ingredients list.
- high_protein is true only when protein_g is at least 20.
- Be accurate with nutrition based on typical serving sizes.
Output ONLY valid JSON, no markdown, no extra text."""


def build_detail_prompt(subject: str, category: str) -> str:
    """Detail-stage instruction for an identified dish."""
    return _DETAIL_TEMPLATE.format(subject=subject, category=category)
