# src/pipeline/llm_factory.py — v2
"""LLM factory — creates per-agent LLM clients using config routing.

Resolves provider:model for each agent via the cascade in llm/config.py
(per-agent → per-complexity → default → fallback) and instantiates the
adapter through the client factory.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dealscope.llm.client_factory import create_llm_client
from dealscope.llm.config import resolve_llm

if TYPE_CHECKING:
    from dealscope.config.settings import Settings
    from dealscope.llm.base_client import BaseLLMClient
    from dealscope.pipeline.plugin_kit.models import AgentDefinition

logger = logging.getLogger(__name__)


class LLMFactory:
    """Create and cache LLM clients per agent.

    Clients are cached by (provider, model) key so agents sharing the same
    assignment reuse a single client instance. Client creation happens on
    first use inside the agent, so a missing credential surfaces as that
    agent's FatalConfigError rather than a pipeline crash.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._clients: dict[str, BaseLLMClient] = {}

    def get_client(self, definition: AgentDefinition) -> BaseLLMClient:
        """Get or create the LLM client for an agent."""
        assignment = resolve_llm(
            definition.name, definition.complexity, self._settings
        )
        cache_key = assignment.key

        if cache_key not in self._clients:
            self._clients[cache_key] = create_llm_client(
                assignment.provider, assignment.model, settings=self._settings
            )
            logger.info(
                "Created LLM client for '%s': %s (source: %s)",
                definition.name,
                cache_key,
                assignment.source,
            )
        return self._clients[cache_key]

    def __call__(self, definition: AgentDefinition) -> BaseLLMClient:
        return self.get_client(definition)
