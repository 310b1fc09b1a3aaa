# src/llm/config.py — v2
"""Per-agent LLM routing with cascade resolution.

Resolution order:
  1. Per-agent override (LLM_AGENT_OVERRIDES={"memo-generator": "openai:gpt-4o"})
  2. Per-complexity assignment (LLM_COMPLEXITY_SIMPLE=anthropic:claude-haiku-4-5-20251001)
  3. Default provider + model (LLM_DEFAULT_PROVIDER + LLM_DEFAULT_MODEL)
  4. Hardcoded fallback (anthropic:claude-sonnet-4-20250514)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from dealscope.config.settings import Settings

Complexity = Literal["simple", "medium", "complex"]

_FALLBACK_PROVIDER = "anthropic"
_FALLBACK_MODEL = "claude-sonnet-4-20250514"


@dataclass(frozen=True)
class LLMAssignment:
    """Resolved LLM provider:model for an agent."""

    provider: str
    model: str
    source: str  # "agent", "complexity", "default", or "fallback"

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


def resolve_llm(agent: str, complexity: Complexity, settings: Settings) -> LLMAssignment:
    """Resolve the LLM assignment for an agent.

    Args:
        agent: Agent name (AgentId value).
        complexity: The agent's complexity hint.
        settings: Application settings.
    """
    parsed = _parse_assignment(settings.llm_agent_overrides.get(agent, ""))
    if parsed:
        return LLMAssignment(provider=parsed[0], model=parsed[1], source="agent")

    per_complexity = getattr(settings, f"llm_complexity_{complexity}", "")
    parsed = _parse_assignment(per_complexity)
    if parsed:
        return LLMAssignment(provider=parsed[0], model=parsed[1], source="complexity")

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
