# src/pipeline/plugin_kit/models.py — v2
"""Agent plugin models: AgentDefinition, AgentOutput."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from dealscope.config.agents import AgentId, Tier
from dealscope.core.models import EarlyWarning

Complexity = Literal["simple", "medium", "complex"]


class AgentDefinition(BaseModel):
    """Static description of an agent type: identity and supervision knobs."""

    model_config = ConfigDict(frozen=True)

    agent_id: AgentId
    tier: Tier
    description: str = ""
    dependencies: tuple[AgentId, ...] = ()
    timeout_ms: int = 50_000
    max_retries: int = 2
    complexity: Complexity = "medium"

    @property
    def name(self) -> str:
        return self.agent_id.value


class AgentOutput(BaseModel):
    """What an agent's run() returns for one attempt."""

    data: dict[str, Any]
    cost: float = 0.0
    llm_calls: int = 0
    tokens_used: int = 0
    early_warnings: list[EarlyWarning] = Field(default_factory=list)
