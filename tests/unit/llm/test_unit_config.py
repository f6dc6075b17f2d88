# tests/unit/llm/test_unit_config.py — v2
"""Tests for llm/config.py — per-component LLM routing cascade."""

from __future__ import annotations

from bitecache.config.settings import Settings
from bitecache.llm.config import LLMAssignment, resolve_llm


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestResolveLLM:
    def test_component_defaults(self):
        s = _settings()
        identifier = resolve_llm("identifier", s)
        detailer = resolve_llm("detailer", s)
        assert identifier.key == "ollama:llava:7b"
        assert detailer.key == "ollama:llama3.2:1b"
        assert identifier.source == "component"

    def test_per_component_override(self):
        s = _settings(llm_detailer="openai:gpt-4o-mini")
        r = resolve_llm("detailer", s)
        assert r.provider == "openai"
        assert r.model == "gpt-4o-mini"
        assert r.source == "component"

    def test_model_with_colon(self):
        s = _settings(llm_identifier="ollama:llama3.2-vision:11b")
        r = resolve_llm("identifier", s)
        assert r.provider == "ollama"
        assert r.model == "llama3.2-vision:11b"

    def test_subject_guesser_inherits_identifier(self):
        s = _settings(llm_identifier="anthropic:claude-haiku")
        r = resolve_llm("subject_guesser", s)
        assert r.key == "anthropic:claude-haiku"
        assert r.source == "inherited"

    def test_subject_guesser_own_setting_wins(self):
        s = _settings(llm_subject_guesser="openai:gpt-4o-mini")
        r = resolve_llm("subject_guesser", s)
        assert r.source == "component"
        assert r.provider == "openai"

    def test_fallback_to_default(self):
        s = _settings(
            llm_detailer="", llm_default_provider="openai", llm_default_model="gpt-4o"
        )
        r = resolve_llm("detailer", s)
        assert r.key == "openai:gpt-4o"
        assert r.source == "default"

    def test_hardcoded_fallback(self):
        s = _settings(llm_detailer="", llm_default_provider="", llm_default_model="")
        r = resolve_llm("detailer", s)
        assert r.key == "ollama:llava:7b"
        assert r.source == "fallback"

    def test_unknown_component_uses_default(self):
        r = resolve_llm("unknown_component", _settings())
        assert r.source == "default"

    def test_key_format(self):
        r = LLMAssignment(provider="ollama", model="llava:7b", source="default")
        assert r.key == "ollama:llava:7b"
