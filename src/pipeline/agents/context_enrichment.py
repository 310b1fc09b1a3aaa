# src/pipeline/agents/context_enrichment.py — v1
"""Context enrichment — Tier 0 lookup of external market and company context.

The actual lookup (funding databases, news, comparable deals) lives behind
the ContextEngine interface. Results are cached per deal so re-runs do not
hit the external sources again. Requires a successful document extraction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from dealscope.cache.base_cache_store import deal_tag
from dealscope.cache.fingerprint import stable_key
from dealscope.config.agents import AgentId
from dealscope.pipeline.errors import DependencyError
from dealscope.pipeline.plugin_kit.base_agent import BaseAgent
from dealscope.pipeline.plugin_kit.models import AgentDefinition, AgentOutput

if TYPE_CHECKING:
    from dealscope.cache.base_cache_store import BaseCacheStore
    from dealscope.core.models import Deal, ExecutionContext

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "context-engine"


class ContextEngine(ABC):
    """External context provider."""

    @abstractmethod
    async def enrich(self, deal: Deal, extraction: Mapping[str, Any]) -> dict[str, Any]:
        """Return context for a deal: competitors, comparables, market data, news."""


class NullContextEngine(ContextEngine):
    """Engine used when no external sources are configured."""

    async def enrich(self, deal: Deal, extraction: Mapping[str, Any]) -> dict[str, Any]:
        return {"sources": [], "note": "no context engine configured"}


class StaticContextEngine(ContextEngine):
    """Serve pre-fetched context, keyed by deal id (case files, tests)."""

    def __init__(self, contexts: Mapping[str, dict[str, Any]]) -> None:
        self._contexts = dict(contexts)

    async def enrich(self, deal: Deal, extraction: Mapping[str, Any]) -> dict[str, Any]:
        return dict(self._contexts.get(deal.id, {}))


class ContextEnrichmentAgent(BaseAgent):
    """Call the context engine once per deal and cache the answer."""

    def __init__(
        self,
        definition: AgentDefinition,
        engine: ContextEngine,
        cache: BaseCacheStore | None = None,
        ttl_s: float | None = None,
    ) -> None:
        self._definition = definition
        self._engine = engine
        self._cache = cache
        self._ttl_s = ttl_s

    @property
    def definition(self) -> AgentDefinition:
        return self._definition

    async def run(self, context: ExecutionContext) -> AgentOutput:
        extraction = context.result_data(AgentId.DOCUMENT_EXTRACTOR.value)
        if extraction is None:
            raise DependencyError(
                "Document extraction did not succeed", agent=self.name
            )

        deal = context.deal
        company = extraction.get("company_name") or deal.company_name or deal.name

        async def compute() -> dict[str, Any]:
            logger.info("Querying context engine for %s", company)
            return await self._engine.enrich(deal, extraction)

        if self._cache is None:
            enrichment = await compute()
        else:
            key = stable_key(deal.id, company, deal.sector, extraction.get("competitors"))
            enrichment = await self._cache.get_or_compute(
                CACHE_NAMESPACE, key, compute, ttl_s=self._ttl_s, tags=[deal_tag(deal.id)]
            )
        return AgentOutput(data=enrichment or {})
