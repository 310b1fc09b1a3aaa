# tests/unit/llm/test_config.py — v1
"""Tests for llm/config.py — per-agent routing cascade."""

from __future__ import annotations

from dealscope.config.settings import Settings
from dealscope.llm.config import LLMAssignment, resolve_llm


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestResolveLLM:
    def test_agent_override_wins(self):
        s = _settings(llm_agent_overrides={"memo-generator": "openai:gpt-4o"})
        a = resolve_llm("memo-generator", "simple", s)
        assert (a.provider, a.model, a.source) == ("openai", "gpt-4o", "agent")

    def test_complexity_assignment(self):
        s = _settings()
        a = resolve_llm("coherence-checker", "simple", s)
        assert a.source == "complexity"
        assert a.model == "claude-haiku-4-5-20251001"

    def test_default_when_complexity_empty(self):
        s = _settings(llm_default_provider="openai", llm_default_model="gpt-4o-mini")
        a = resolve_llm("financial-auditor", "complex", s)
        assert a == LLMAssignment(provider="openai", model="gpt-4o-mini", source="default")

    def test_fallback(self):
        s = _settings(llm_default_provider="", llm_default_model="")
        a = resolve_llm("financial-auditor", "medium", s)
        assert a.source == "fallback"
        assert a.key == "anthropic:claude-sonnet-4-20250514"

    def test_malformed_override_ignored(self):
        s = _settings(llm_agent_overrides={"memo-generator": "gpt-4o"})
        assert resolve_llm("memo-generator", "medium", s).source == "default"
