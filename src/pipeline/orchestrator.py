# src/pipeline/orchestrator.py — v3
"""Pipeline orchestrator — four-tier due-diligence workflow.

Drives one analysis run:
  Tier 0: document extraction → fact ingestion → context enrichment →
          coherence check (strictly sequential)
  Tier 1: independent analysts, fan-out / fan-in
  Tier 2: synthesis, staged from declared dependencies (batch, scorer, memo)
  Tier 3: one sector expert, or skipped when the sector matches none

Tier N+1 starts only once every agent of Tier N has settled. A failed agent
never aborts its tier; the run is ``success`` as long as Tier 0 extraction
succeeded. High and critical early warnings reach the caller as soon as the
result carrying them settles.

When a cache service is configured, the run is checkpointed at every tier
barrier. A run cut off mid-tier can then be listed, resumed from the tier
after its last barrier, or cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from dealscope.cache.base_cache_store import deal_tag
from dealscope.cache.fingerprint import deal_fingerprint
from dealscope.config.agents import (
    TIER1_AGENTS,
    TIER2_AGENTS,
    AgentId,
    Tier,
    select_sector_expert,
)
from dealscope.core.models import (
    AgentResult,
    AnalysisOptions,
    AnalysisRun,
    ExecutionContext,
    ProgressUpdate,
    ReanalysisOutcome,
    TierResult,
    utcnow,
)
from dealscope.logging.context import set_deal_context, set_tier_context
from dealscope.pipeline.agents.document_extractor import facts_from_result
from dealscope.pipeline.callbacks import notify
from dealscope.pipeline.checkpoints import (
    CheckpointNotFoundError,
    CheckpointStore,
    RunCheckpoint,
)
from dealscope.pipeline.dag_builder import build_dag
from dealscope.pipeline.deadline import Deadline, check_nested
from dealscope.pipeline.early_warnings import EarlyWarningChannel
from dealscope.pipeline.runner import AgentRunner

if TYPE_CHECKING:
    from dealscope.cache.base_cache_store import BaseCacheStore
    from dealscope.config.settings import Settings
    from dealscope.core.providers import CaseProvider
    from dealscope.facts.store import FactStore
    from dealscope.pipeline.plugin_kit.base_agent import BaseAgent
    from dealscope.pipeline.registry import AgentRegistry

logger = logging.getLogger(__name__)

RUN_CACHE_NAMESPACE = "deals"

REQUIRED_AGENTS: tuple[AgentId, ...] = (
    AgentId.DOCUMENT_EXTRACTOR,
    AgentId.CONTEXT_ENRICHMENT,
    AgentId.COHERENCE_CHECKER,
    *TIER1_AGENTS,
    *TIER2_AGENTS,
)


class _RunTracker:
    """Mutable per-run bookkeeping: settled results, progress and warnings."""

    def __init__(
        self,
        options: AnalysisOptions,
        channel: EarlyWarningChannel,
        total_agents: int,
    ) -> None:
        self.options = options
        self.channel = channel
        self.total_agents = total_agents
        self.results: dict[str, AgentResult] = {}
        self.cost = 0.0

    def restore(self, results: dict[str, AgentResult]) -> None:
        self.results.update(results)
        self.cost = sum(r.cost for r in self.results.values())

    async def settled(self, result: AgentResult) -> None:
        self.results[result.agent_name] = result
        self.cost += result.cost
        await self.channel.inspect(result)
        await notify(
            self.options.on_progress,
            ProgressUpdate(
                current_agent=result.agent_name,
                completed_agents=len(self.results),
                total_agents=max(self.total_agents, len(self.results)),
                latest_result=result,
                estimated_cost_so_far=self.cost,
            ),
        )


class Orchestrator:
    """Top-level scheduler for a deal analysis.

    Args:
        registry: Agents keyed by AgentId. Must contain every Tier 0-2 agent.
        runner: Supervises each agent call (timeout, retries).
        fact_store: Receives Tier 0 extraction output.
        provider: Source of deal metadata and documents.
        settings: Application settings.
        cache: Optional cache service for completed runs and checkpoints.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        runner: AgentRunner,
        fact_store: FactStore,
        provider: CaseProvider,
        settings: Settings,
        cache: BaseCacheStore | None = None,
    ) -> None:
        self._registry = registry
        self._runner = runner
        self._fact_store = fact_store
        self._provider = provider
        self._settings = settings
        self._cache = cache if settings.cache_enabled else None
        self._checkpoints = (
            CheckpointStore(self._cache, ttl_s=settings.checkpoint_ttl_s)
            if self._cache is not None
            else None
        )

    # ------------------------------------------------------------------
    # Full analysis
    # ------------------------------------------------------------------

    async def run_full_analysis(
        self, deal_id: str, options: AnalysisOptions | None = None
    ) -> AnalysisRun:
        """Run every tier for a deal and return the finalized AnalysisRun.

        Raises:
            DealNotFoundError: If the provider does not know the deal.
            RegistryError: If a required agent is not registered.
        """
        options = options or AnalysisOptions()
        self._registry.validate_complete(REQUIRED_AGENTS)

        deal = await self._provider.get_deal(deal_id)
        documents = await self._provider.get_documents(deal_id)
        run_id = uuid.uuid4().hex[:12]
        set_deal_context(deal_id, run_id)

        cache_key = deal_fingerprint(deal, documents, options.mode)
        if self._cache is not None and not options.force_refresh:
            cached = await self._cache.get(RUN_CACHE_NAMESPACE, cache_key)
            if cached is not None:
                return _from_cache(cached)

        run = AnalysisRun(run_id=run_id, deal_id=deal_id, mode=options.mode)
        context = ExecutionContext(run_id=run_id, deal=deal, documents=tuple(documents))
        logger.info(
            "Starting %s analysis of deal %s (%d documents)",
            options.mode, deal_id, len(documents),
        )
        return await self._drive(run, context, options, _tiers_for(options.mode), cache_key)

    async def run_tier(self, tier: Tier, context: ExecutionContext) -> TierResult:
        """Run a single tier against ``context`` and return its settled results."""
        tracker = _RunTracker(AnalysisOptions(), EarlyWarningChannel(), 0)
        set_tier_context(int(tier))
        try:
            tier_result, _ = await self._execute_tier(tier, context, tracker)
        finally:
            set_tier_context(None)
        return tier_result

    # ------------------------------------------------------------------
    # Interrupted runs
    # ------------------------------------------------------------------

    async def find_interrupted_analyses(self, deal_id: str) -> list[RunCheckpoint]:
        """Runs of ``deal_id`` that were cut off after a tier barrier."""
        if self._checkpoints is None:
            return []
        return await self._checkpoints.list_for_deal(deal_id)

    async def resume_analysis(
        self, run_id: str, options: AnalysisOptions | None = None
    ) -> AnalysisRun:
        """Continue an interrupted run from the tier after its last barrier.

        Mode, cost limit and fail-fast come from the checkpoint; ``options``
        only contributes the callbacks.

        Raises:
            CheckpointNotFoundError: If the run has no live checkpoint.
            DealNotFoundError: If the provider no longer knows the deal.
        """
        checkpoint = (
            await self._checkpoints.load(run_id) if self._checkpoints is not None else None
        )
        if checkpoint is None:
            raise CheckpointNotFoundError(run_id)
        self._registry.validate_complete(REQUIRED_AGENTS)

        run = checkpoint.run
        options = options or AnalysisOptions()
        resumed_options = AnalysisOptions(
            mode=run.mode,
            max_cost_usd=checkpoint.max_cost_usd,
            fail_fast_on_critical=checkpoint.fail_fast_on_critical,
            on_progress=options.on_progress,
            on_early_warning=options.on_early_warning,
        )
        deal = await self._provider.get_deal(run.deal_id)
        documents = await self._provider.get_documents(run.deal_id)
        facts = await self._fact_store.get_current_facts(run.deal_id)
        set_deal_context(run.deal_id, run_id)

        context = ExecutionContext(
            run_id=run_id,
            deal=deal,
            documents=tuple(documents),
            previous_results=dict(run.results),
            facts=tuple(facts),
        )
        enrichment = run.results.get(AgentId.CONTEXT_ENRICHMENT.value)
        if enrichment is not None and enrichment.success:
            context = context.with_enrichment(enrichment.data)

        tiers = [t for t in _tiers_for(run.mode) if t >= checkpoint.next_tier]
        logger.info(
            "Resuming analysis %s of deal %s at tier %d (%d agents already settled)",
            run_id, run.deal_id, checkpoint.next_tier, checkpoint.completed_agents,
        )
        cache_key = deal_fingerprint(deal, documents, run.mode)
        return await self._drive(run, context, resumed_options, tiers, cache_key)

    async def cancel_interrupted_analysis(self, run_id: str) -> bool:
        """Drop an interrupted run's checkpoint. Returns whether one existed."""
        if self._checkpoints is None:
            return False
        checkpoint = await self._checkpoints.load(run_id)
        if checkpoint is None:
            return False
        await self._checkpoints.delete(run_id, checkpoint.deal_id)
        logger.info("Cancelled interrupted analysis %s of deal %s", run_id, checkpoint.deal_id)
        return True

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    async def _drive(
        self,
        run: AnalysisRun,
        context: ExecutionContext,
        options: AnalysisOptions,
        tiers: list[Tier],
        cache_key: str,
    ) -> AnalysisRun:
        """Run ``tiers`` in order on top of whatever ``run`` already holds."""
        channel = EarlyWarningChannel(options.on_early_warning)
        channel.restore(run.early_warnings)
        expert = select_sector_expert(context.deal.sector) if run.mode == "full" else None
        total_agents = 3 + len(TIER1_AGENTS)
        if run.mode == "full":
            total_agents += len(TIER2_AGENTS) + (1 if expert in self._registry else 0)
        tracker = _RunTracker(options, channel, total_agents)
        tracker.restore(run.results)
        max_cost = (
            options.max_cost_usd
            if options.max_cost_usd is not None
            else self._settings.analysis_max_cost_usd
        )
        base_time_ms = run.total_time_ms
        started = time.monotonic()

        for tier in tiers:
            set_tier_context(int(tier))
            tier_result, context = await self._execute_tier(tier, context, tracker)
            run.results.update(tier_result.results)
            run.total_cost += tier_result.total_cost
            if not tier_result.skipped:
                run.tiers_completed.append(int(tier))

            if tier == Tier.EXTRACTION:
                extraction = tier_result.results.get(AgentId.DOCUMENT_EXTRACTOR.value)
                coherence = tier_result.results.get(AgentId.COHERENCE_CHECKER.value)
                if coherence is not None and coherence.success:
                    run.coherence = coherence.data
                if extraction is None or not extraction.success:
                    run.status = "failed"
                    run.stopped_reason = "tier0_extraction_failed"
                    break

            if tier != tiers[-1]:
                reason = _stop_reason(run, channel, options, max_cost)
                if reason is not None:
                    run.stopped_reason = reason
                    logger.warning("Stopping analysis after tier %d: %s", tier, reason)
                    break
                if self._checkpoints is not None:
                    run.early_warnings = channel.warnings
                    run.total_time_ms = base_time_ms + int((time.monotonic() - started) * 1000)
                    await self._checkpoints.save(
                        RunCheckpoint(
                            run=run,
                            next_tier=int(tier) + 1,
                            max_cost_usd=max_cost,
                            fail_fast_on_critical=options.fail_fast_on_critical,
                        )
                    )

        set_tier_context(None)
        if run.status == "running":
            run.status = "success"
        run.early_warnings = channel.warnings
        run.total_time_ms = base_time_ms + int((time.monotonic() - started) * 1000)
        run.finished_at = utcnow()
        run.summary = _summarize(run)
        logger.info("Analysis of deal %s finished: %s", run.deal_id, run.summary)

        if self._checkpoints is not None:
            await self._checkpoints.delete(run.run_id, run.deal_id)
        if self._cache is not None and run.status == "success" and run.stopped_reason is None:
            await self._cache.set(
                RUN_CACHE_NAMESPACE,
                cache_key,
                run.model_dump(mode="json"),
                ttl_s=self._settings.analysis_cache_ttl_s,
                tags=[deal_tag(run.deal_id)],
            )
        return run

    async def _execute_tier(
        self, tier: Tier, context: ExecutionContext, tracker: _RunTracker
    ) -> tuple[TierResult, ExecutionContext]:
        started = time.monotonic()
        if tier == Tier.EXTRACTION:
            results, context = await self._run_tier0(context, tracker)
            skip_reason = None
        elif tier == Tier.ANALYSIS:
            results = await self._fan_out(
                [self._registry.get(a) for a in TIER1_AGENTS], context, tracker
            )
            skip_reason = None
        elif tier == Tier.SYNTHESIS:
            results = await self._run_staged(TIER2_AGENTS, context, tracker)
            skip_reason = None
        else:
            results, skip_reason = await self._run_tier3(context, tracker)

        tier_result = TierResult(
            tier=int(tier),
            results=results,
            total_cost=sum(r.cost for r in results.values()),
            total_time_ms=int((time.monotonic() - started) * 1000),
            skipped=skip_reason is not None,
            skip_reason=skip_reason,
        )
        logger.info(
            "Tier %d settled: %d/%d succeeded, cost=$%.4f, time=%dms",
            tier, tier_result.success_count, len(results),
            tier_result.total_cost, tier_result.total_time_ms,
        )
        return tier_result, context.with_results(results)

    async def _run_tier0(
        self, context: ExecutionContext, tracker: _RunTracker
    ) -> tuple[dict[str, AgentResult], ExecutionContext]:
        results: dict[str, AgentResult] = {}

        extraction = await self._run_one(AgentId.DOCUMENT_EXTRACTOR, context, tracker)
        results[extraction.agent_name] = extraction
        context = context.with_results(results)
        if not extraction.success:
            logger.error("Document extraction failed: %s", extraction.error)
            return results, context

        context = await self._ingest_extracted_facts(context, extraction)

        enrichment = await self._run_one(AgentId.CONTEXT_ENRICHMENT, context, tracker)
        results[enrichment.agent_name] = enrichment
        context = context.with_results(results)
        if enrichment.success:
            context = context.with_enrichment(enrichment.data)

        coherence = await self._run_one(AgentId.COHERENCE_CHECKER, context, tracker)
        results[coherence.agent_name] = coherence
        return results, context.with_results(results)

    async def _ingest_extracted_facts(
        self, context: ExecutionContext, extraction: AgentResult
    ) -> ExecutionContext:
        deal_id = context.deal.id
        candidates = facts_from_result(extraction.data)
        try:
            ingestion = await self._fact_store.ingest_facts(deal_id, candidates)
            current = await self._fact_store.get_current_facts(deal_id)
        except Exception:
            logger.exception("Fact ingestion failed for deal %s", deal_id)
            return context
        logger.info(
            "Ingested facts: %d accepted, %d rejected, %d contradictions",
            len(ingestion.accepted), len(ingestion.rejected), len(ingestion.contradictions),
        )
        return context.with_facts(current)

    async def _run_staged(
        self, agent_ids: Iterable[AgentId], context: ExecutionContext, tracker: _RunTracker
    ) -> dict[str, AgentResult]:
        plan = build_dag(self._registry.dependency_map(agent_ids))
        results: dict[str, AgentResult] = {}
        for stage in plan.stages:
            stage_results = await self._fan_out(
                [self._registry.get(a) for a in stage], context.with_results(results), tracker
            )
            results.update(stage_results)
        return results

    async def _run_tier3(
        self, context: ExecutionContext, tracker: _RunTracker
    ) -> tuple[dict[str, AgentResult], str | None]:
        expert = select_sector_expert(context.deal.sector)
        if expert is None:
            logger.info("No sector expert for sector %r; skipping tier 3", context.deal.sector)
            return {}, f"no sector expert for {context.deal.sector!r}"
        if expert not in self._registry:
            logger.warning("Sector expert %s is not registered; skipping tier 3", expert.value)
            return {}, f"sector expert {expert.value} not registered"
        result = await self._run_one(expert, context, tracker)
        return {result.agent_name: result}, None

    async def _fan_out(
        self, agents: list[BaseAgent], context: ExecutionContext, tracker: _RunTracker
    ) -> dict[str, AgentResult]:
        """Run agents concurrently; record each result as soon as it settles."""
        results: dict[str, AgentResult] = {}
        pending = [asyncio.ensure_future(self._runner.run(a, context)) for a in agents]
        try:
            for settled in asyncio.as_completed(pending):
                result = await settled
                results[result.agent_name] = result
                await tracker.settled(result)
        except asyncio.CancelledError:
            # The run was cancelled mid-tier: take every agent call down with it.
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise
        return {a.name: results[a.name] for a in agents}

    async def _run_one(
        self, agent_id: AgentId, context: ExecutionContext, tracker: _RunTracker
    ) -> AgentResult:
        result = await self._runner.run(self._registry.get(agent_id), context)
        await tracker.settled(result)
        return result

    # ------------------------------------------------------------------
    # Standalone re-analysis
    # ------------------------------------------------------------------

    async def run_single_agent(
        self,
        deal_id: str,
        agent_id: AgentId,
        outer_timeout_ms: int | None = None,
    ) -> ReanalysisOutcome:
        """Re-run one agent on the deal's current facts under the dual timeout.

        The agent's own timeout must be strictly shorter than the outer guard.
        One Deadline bounds the runner's attempts and retries, and the outer
        ``wait_for`` enforces the same limit from the caller side.

        Raises:
            ConfigurationError: If inner timeout >= outer timeout.
            RegistryError: If the agent is not registered.
        """
        agent = self._registry.get(agent_id)
        outer_ms = outer_timeout_ms or self._settings.outer_guard_timeout_ms
        check_nested(agent.definition.timeout_ms, outer_ms)

        deal = await self._provider.get_deal(deal_id)
        documents = await self._provider.get_documents(deal_id)
        facts = await self._fact_store.get_current_facts(deal_id)
        run_id = uuid.uuid4().hex[:12]
        set_deal_context(deal_id, run_id)
        context = ExecutionContext(
            run_id=run_id, deal=deal, documents=tuple(documents), facts=tuple(facts)
        )

        deadline = Deadline.after_ms(outer_ms)
        try:
            result = await asyncio.wait_for(
                self._runner.run(agent, context, deadline=deadline),
                timeout=outer_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.error("Re-analysis of %s hit the outer guard (%dms)", agent.name, outer_ms)
            return ReanalysisOutcome(
                agent_name=agent.name,
                status="timeout",
                error=f"Outer deadline of {outer_ms}ms exceeded",
            )

        if result.success:
            status = "success"
        elif result.timed_out:
            status = "timeout"
        else:
            status = "failed"
        return ReanalysisOutcome(
            agent_name=agent.name, status=status, result=result, error=result.error
        )


def _tiers_for(mode: str) -> list[Tier]:
    if mode == "express":
        return [Tier.EXTRACTION, Tier.ANALYSIS]
    return [Tier.EXTRACTION, Tier.ANALYSIS, Tier.SYNTHESIS, Tier.SPECIALIST]


def _stop_reason(
    run: AnalysisRun,
    channel: EarlyWarningChannel,
    options: AnalysisOptions,
    max_cost: float | None,
) -> str | None:
    if max_cost is not None and run.total_cost >= max_cost:
        return f"cost_limit_reached (${run.total_cost:.4f} >= ${max_cost:.4f})"
    if options.fail_fast_on_critical and channel.summary().has_critical:
        return "critical_early_warning"
    return None


def _from_cache(cached: dict) -> AnalysisRun:
    run = AnalysisRun.model_validate(cached)
    age_ms = None
    if run.finished_at is not None:
        age_ms = int((utcnow() - run.finished_at).total_seconds() * 1000)
    logger.info("Serving cached analysis for deal %s (age %sms)", run.deal_id, age_ms)
    return run.model_copy(update={"from_cache": True, "cache_age_ms": age_ms})


def _summarize(run: AnalysisRun) -> str:
    parts = [
        f"{run.status}: {run.success_count}/{len(run.results)} agents succeeded",
        f"tiers {run.tiers_completed}",
        f"cost ${run.total_cost:.4f}",
    ]
    if run.coherence:
        parts.append(f"coherence {run.coherence.get('grade')} ({run.coherence.get('score')}/100)")
    if run.early_warnings:
        parts.append(f"{len(run.early_warnings)} early warnings")
    if run.stopped_reason:
        parts.append(f"stopped: {run.stopped_reason}")
    return ", ".join(parts)
