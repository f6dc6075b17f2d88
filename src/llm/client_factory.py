# src/llm/client_factory.py — v3
"""Factory: instantiate LLM client from provider name.

Called when wiring the analysis pipeline to create per-component clients
based on config resolution (see llm/config.py cascade).
"""

from __future__ import annotations

import importlib
import logging

from bitecache.config.settings import Settings
from bitecache.llm.base_client import BaseLLMClient
from bitecache.llm.config import resolve_llm

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "ollama": "bitecache.llm.adapters.ollama_adapter.OllamaAdapter",
    "anthropic": "bitecache.llm.adapters.anthropic_adapter.AnthropicAdapter",
    "openai": "bitecache.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (ollama, anthropic, openai).
        model: Model name (e.g. llava:7b).
        settings: Application settings (for API keys and hosts).
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured BaseLLMClient instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model

    if settings is not None:
        if provider == "anthropic":
            init_kwargs.setdefault("api_key", settings.anthropic_api_key)
        elif provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
        elif provider == "ollama":
            init_kwargs.setdefault("host", settings.ollama_base_url)

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def create_component_client(component: str, settings: Settings) -> BaseLLMClient:
    """Resolve the routing cascade for *component* and build its client."""
    assignment = resolve_llm(component, settings)
    logger.debug(
        "LLM for %s: %s (source=%s)", component, assignment.key, assignment.source
    )
    return create_llm_client(assignment.provider, assignment.model, settings)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
