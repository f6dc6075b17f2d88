# src/llm/config.py — v2
"""Per-component LLM routing with cascade resolution.

Resolution order:
  1. Per-component setting (LLM_IDENTIFIER=ollama:llava:7b)
  2. Component fallback chain (the subject guesser reuses the identifier)
  3. Default provider + model (LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL)
  4. Hardcoded fallback (ollama:llava:7b)
"""

from __future__ import annotations

from dataclasses import dataclass

from bitecache.config.settings import Settings

_FALLBACK_PROVIDER = "ollama"
_FALLBACK_MODEL = "llava:7b"

# Component → component whose assignment it inherits when unset.
_INHERITS: dict[str, str] = {"subject_guesser": "identifier"}


@dataclass(frozen=True)
class LLMAssignment:
    """Resolved LLM provider:model for a component."""

    provider: str
    model: str
    source: str  # "component", "inherited", "default", or "fallback"

    @property
    def key(self) -> str:
        """Return 'provider:model' string."""
        return f"{self.provider}:{self.model}"


def _parse_assignment(value: str) -> tuple[str, str] | None:
    """Parse 'provider:model' string. Returns None if empty."""
    if not value or ":" not in value:
        return None
    provider, model = value.split(":", 1)
    return (provider.strip(), model.strip())


def resolve_llm(component: str, settings: Settings) -> LLMAssignment:
    """Resolve LLM assignment for a component using the cascade.

    Args:
        component: Component name ("identifier", "detailer", "subject_guesser").
        settings: Application settings.

    Returns:
        Resolved LLMAssignment with provider, model, and resolution source.
    """
    parsed = _parse_assignment(getattr(settings, f"llm_{component}", ""))
    if parsed:
        return LLMAssignment(provider=parsed[0], model=parsed[1], source="component")

    parent = _INHERITS.get(component)
    if parent:
        inherited = resolve_llm(parent, settings)
        if inherited.source == "component":
            return LLMAssignment(
                provider=inherited.provider, model=inherited.model, source="inherited"
            )

    if settings.llm_default_provider and settings.llm_default_model:
        return LLMAssignment(
            provider=settings.llm_default_provider,
            model=settings.llm_default_model,
            source="default",
        )

    return LLMAssignment(
        provider=_FALLBACK_PROVIDER,
        model=_FALLBACK_MODEL,
        source="fallback",
    )
