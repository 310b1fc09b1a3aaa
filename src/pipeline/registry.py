# src/pipeline/registry.py — v2
"""Agent registry — lookup of agent instances by AgentId.

The registry is a plain mapping built explicitly at startup (see
pipeline/agents/catalog.py). Lookups use the closed AgentId enumeration, so
an unknown agent is a type error rather than a missing-string surprise, and
``validate_complete`` lets the orchestrator fail before any agent runs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dealscope.config.agents import AgentId, Tier
from dealscope.pipeline.plugin_kit.base_agent import BaseAgent

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when an agent is missing or registered twice."""


class AgentRegistry:
    """Registry of pipeline agents keyed by AgentId."""

    def __init__(self, agents: Iterable[BaseAgent] = ()) -> None:
        self._agents: dict[AgentId, BaseAgent] = {}
        for agent in agents:
            self.register(agent)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    @property
    def agent_ids(self) -> list[AgentId]:
        return list(self._agents)

    def register(self, agent: BaseAgent, *, replace: bool = False) -> None:
        """Add an agent. Re-registering an id requires ``replace=True``."""
        agent_id = agent.definition.agent_id
        if agent_id in self._agents and not replace:
            raise RegistryError(f"Agent '{agent_id.value}' is already registered")
        self._agents[agent_id] = agent
        logger.debug("Registered agent: %s (tier %d)", agent_id.value, agent.definition.tier)

    def get(self, agent_id: AgentId) -> BaseAgent:
        """Return the agent for ``agent_id`` or raise RegistryError."""
        agent = self._agents.get(agent_id)
        if agent is None:
            raise RegistryError(f"Agent '{AgentId(agent_id).value}' not found in registry")
        return agent

    def for_tier(self, tier: Tier) -> list[BaseAgent]:
        return [a for a in self._agents.values() if a.definition.tier == tier]

    def validate_complete(self, required: Iterable[AgentId]) -> None:
        """Raise RegistryError listing every required id that is not registered."""
        missing = [a.value for a in required if a not in self._agents]
        if missing:
            raise RegistryError(f"Agents not registered: {', '.join(missing)}")

    def dependency_map(self, agent_ids: Iterable[AgentId]) -> dict[AgentId, list[AgentId]]:
        """agent_id -> in-set dependencies, for the given subset.

        Dependencies on agents outside the subset (earlier tiers) are
        dropped; they are already settled when the subset runs.
        """
        ids = list(agent_ids)
        scope = set(ids)
        return {
            agent_id: [d for d in self.get(agent_id).definition.dependencies if d in scope]
            for agent_id in ids
        }
