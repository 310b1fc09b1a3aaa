# src/api/facade.py — v2
"""Public API facade — wiring of the analysis services.

Usage:
    from dealscope.api.facade import build_orchestrator
    orchestrator = build_orchestrator(settings, provider, cache=cache)
    run = await orchestrator.run_full_analysis(deal_id, options)

Every service is constructed explicitly here and handed to the orchestrator;
nothing is a module-level singleton, so callers (and tests) control the
lifetime of the cache and the fact store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dealscope.config.settings import Settings
from dealscope.facts.repository import InMemoryFactRepository, SqliteFactRepository
from dealscope.facts.store import FactStore
from dealscope.llm.retry import RetryConfig
from dealscope.pipeline.agents.catalog import build_registry
from dealscope.pipeline.llm_factory import LLMFactory
from dealscope.pipeline.orchestrator import Orchestrator
from dealscope.pipeline.runner import AgentRunner

if TYPE_CHECKING:
    from dealscope.cache.base_cache_store import BaseCacheStore
    from dealscope.core.providers import CaseProvider
    from dealscope.pipeline.agents.context_enrichment import ContextEngine
    from dealscope.pipeline.plugin_kit.base_agent import LLMProvider
    from dealscope.pipeline.registry import AgentRegistry

logger = logging.getLogger(__name__)


def build_fact_store(settings: Settings) -> FactStore:
    if settings.fact_store_backend == "sqlite":
        return FactStore(SqliteFactRepository(settings.fact_store_path))
    return FactStore(InMemoryFactRepository())


def build_runner(settings: Settings) -> AgentRunner:
    return AgentRunner(
        RetryConfig(
            base_delay_s=settings.agent_retry_base_delay_s,
            backoff_factor=settings.agent_retry_backoff_factor,
        )
    )


def build_orchestrator(
    settings: Settings,
    provider: CaseProvider,
    *,
    cache: BaseCacheStore | None = None,
    fact_store: FactStore | None = None,
    context_engine: ContextEngine | None = None,
    llm_provider: LLMProvider | None = None,
    registry: AgentRegistry | None = None,
) -> Orchestrator:
    """Assemble an Orchestrator from settings.

    Args:
        settings: Application settings.
        provider: Deal and document source.
        cache: Cache service shared by the run cache and context enrichment.
        fact_store: Defaults to the backend configured in settings.
        context_engine: External context source for Tier 0 enrichment.
        llm_provider: Maps an AgentDefinition to an LLM client. Defaults to
            an LLMFactory over settings.
        registry: Pre-built registry; built from the catalog when omitted.
    """
    if registry is None:
        registry = build_registry(
            settings,
            llm_provider or LLMFactory(settings),
            context_engine=context_engine,
            cache=cache,
        )
    logger.debug("Orchestrator assembled with %d agents", len(registry))
    return Orchestrator(
        registry=registry,
        runner=build_runner(settings),
        fact_store=fact_store or build_fact_store(settings),
        provider=provider,
        settings=settings,
        cache=cache,
    )
