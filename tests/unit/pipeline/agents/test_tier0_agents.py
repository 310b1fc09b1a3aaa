# tests/unit/pipeline/agents/test_tier0_agents.py — v1
"""Tests for the Tier 0 agents — extractor, context enrichment, coherence checker."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from dealscope.cache.base_cache_store import deal_tag
from dealscope.cache.memory_store import MemoryCacheStore
from dealscope.config.agents import AgentId, Tier
from dealscope.core.models import AgentResult
from dealscope.facts.models import FactSource
from dealscope.llm.models import LLMResponse
from dealscope.pipeline.agents.coherence_checker import CoherenceCheckerAgent
from dealscope.pipeline.agents.context_enrichment import (
    ContextEnrichmentAgent,
    NullContextEngine,
    StaticContextEngine,
)
from dealscope.pipeline.agents.document_extractor import (
    DocumentExtractorAgent,
    facts_from_result,
)
from dealscope.pipeline.errors import DependencyError
from dealscope.pipeline.plugin_kit.models import AgentDefinition


def _definition(agent_id: AgentId) -> AgentDefinition:
    return AgentDefinition(agent_id=agent_id, tier=Tier.EXTRACTION)


def _with_extraction(context, data):
    result = AgentResult(agent_name="document-extractor", success=True, data=data)
    return context.with_results({"document-extractor": result})


class TestDocumentExtractor:
    @pytest.fixture
    def llm(self, mock_llm_client):
        payload = {
            "company_name": "Acme Analytics",
            "competitors": ["Globex"],
            "facts": [
                {
                    "fact_key": "financial.arr",
                    "value": 600000,
                    "confidence": 92,
                    "quote": "ARR €600K",
                    "source_document_id": "doc_deck",
                },
                {
                    "fact_key": "financial.burn_rate",
                    "value": 80000,
                    "confidence": 88,
                    "quote": "Burn rate 80K/month",
                    "source_document_id": "doc_fm",
                },
                {"fact_key": "team.size", "value": 12},
            ],
        }
        mock_llm_client.complete.return_value = LLMResponse(
            content=json.dumps(payload),
            input_tokens=2_000,
            output_tokens=400,
            model="claude-sonnet-4-20250514",
            provider="anthropic",
            latency_ms=900,
        )
        return mock_llm_client

    @pytest.mark.asyncio
    async def test_source_follows_document_type(self, llm, sample_context):
        agent = DocumentExtractorAgent(
            _definition(AgentId.DOCUMENT_EXTRACTOR), MagicMock(return_value=llm)
        )
        output = await agent.run(sample_context)

        facts = facts_from_result(output.data)
        assert [f.source for f in facts] == [
            FactSource.PITCH_DECK,
            FactSource.FINANCIAL_MODEL,
            FactSource.PITCH_DECK,
        ]
        assert facts[0].source_confidence == 92
        assert facts[0].extracted_text == "ARR €600K"
        assert facts[2].source_confidence is None
        assert output.data["company_name"] == "Acme Analytics"

    @pytest.mark.asyncio
    async def test_prompt_lists_keys_and_documents(self, llm, sample_context):
        agent = DocumentExtractorAgent(
            _definition(AgentId.DOCUMENT_EXTRACTOR), MagicMock(return_value=llm)
        )
        await agent.run(sample_context)
        prompt = llm.complete.call_args.kwargs["messages"][0].content
        assert "financial.arr" in prompt
        assert "doc_deck" in prompt
        assert "Acme Seed" in prompt

    def test_facts_from_result_skips_malformed(self):
        data = {"facts": [{"fact_key": "team.size", "value": 4}, {"value": 1}]}
        (fact,) = facts_from_result(data)
        assert fact.fact_key == "team.size"

    def test_facts_from_empty(self):
        assert facts_from_result(None) == []
        assert facts_from_result({}) == []


class TestContextEnrichment:
    @pytest.mark.asyncio
    async def test_requires_extraction(self, sample_context):
        agent = ContextEnrichmentAgent(
            _definition(AgentId.CONTEXT_ENRICHMENT), NullContextEngine()
        )
        with pytest.raises(DependencyError):
            await agent.run(sample_context)

    @pytest.mark.asyncio
    async def test_static_engine(self, sample_context):
        engine = StaticContextEngine({"deal_001": {"market": {"cagr": 18}}})
        agent = ContextEnrichmentAgent(_definition(AgentId.CONTEXT_ENRICHMENT), engine)
        output = await agent.run(_with_extraction(sample_context, {"company_name": "Acme"}))
        assert output.data == {"market": {"cagr": 18}}
        assert output.cost == 0.0

    @pytest.mark.asyncio
    async def test_null_engine(self, sample_context):
        agent = ContextEnrichmentAgent(
            _definition(AgentId.CONTEXT_ENRICHMENT), NullContextEngine()
        )
        output = await agent.run(_with_extraction(sample_context, {}))
        assert output.data["sources"] == []

    @pytest.mark.asyncio
    async def test_cached_per_deal(self, sample_context):
        engine = MagicMock()
        engine.enrich = AsyncMock(return_value={"news": ["seed round"]})
        cache = MemoryCacheStore()
        agent = ContextEnrichmentAgent(
            _definition(AgentId.CONTEXT_ENRICHMENT), engine, cache=cache, ttl_s=60
        )
        context = _with_extraction(sample_context, {"company_name": "Acme"})

        first = await agent.run(context)
        second = await agent.run(context)

        assert first.data == second.data == {"news": ["seed round"]}
        engine.enrich.assert_awaited_once()
        assert await cache.invalidate_by_tag(deal_tag("deal_001")) == 1

    @pytest.mark.asyncio
    async def test_engine_failure_propagates(self, sample_context):
        engine = MagicMock()
        engine.enrich = AsyncMock(side_effect=ConnectionError("crunchbase down"))
        agent = ContextEnrichmentAgent(
            _definition(AgentId.CONTEXT_ENRICHMENT), engine, cache=MemoryCacheStore()
        )
        with pytest.raises(ConnectionError):
            await agent.run(_with_extraction(sample_context, {}))


class TestCoherenceChecker:
    @pytest.mark.asyncio
    async def test_report_in_data(self, sample_context, make_current_fact):
        context = sample_context.with_facts(
            [
                make_current_fact("financial.mrr", 50_000),
                make_current_fact("financial.arr", 700_000),
            ]
        )
        agent = CoherenceCheckerAgent(_definition(AgentId.COHERENCE_CHECKER))
        output = await agent.run(context)
        assert output.data["grade"] == "C"
        assert output.cost == 0.0
        assert output.early_warnings == []

    @pytest.mark.asyncio
    async def test_unreliable_data_raises_warning(self, sample_context, make_current_fact):
        context = sample_context.with_facts(
            [
                make_current_fact("financial.mrr", 50_000),
                make_current_fact("financial.arr", 2_000_000),
                make_current_fact("financial.gross_margin", 140),
                make_current_fact("traction.churn_monthly", -3),
            ]
        )
        agent = CoherenceCheckerAgent(_definition(AgentId.COHERENCE_CHECKER))
        output = await agent.run(context)
        assert output.data["recommendation"] == "DATA_UNRELIABLE"
        (warning,) = output.early_warnings
        assert warning.severity == "high"
        assert warning.agent_name == "coherence-checker"
        assert len(warning.evidence) == 3

    @pytest.mark.asyncio
    async def test_no_facts_no_warning(self, sample_context):
        agent = CoherenceCheckerAgent(_definition(AgentId.COHERENCE_CHECKER))
        output = await agent.run(sample_context)
        assert output.data["score"] == 0
        assert output.early_warnings == []
