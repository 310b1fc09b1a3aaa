# tests/unit/pipeline/agents/test_analysts.py — v1
"""Tests for analyst, synthesis and sector-expert agents, plus the catalog."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from dealscope.config.agents import TIER1_AGENTS, TIER3_AGENTS, AgentId, Tier
from dealscope.config.settings import Settings
from dealscope.core.models import AgentResult
from dealscope.llm.models import LLMResponse
from dealscope.pipeline.agents.analyst import AnalystAgent, AnalystOutput
from dealscope.pipeline.agents.catalog import AGENT_CATALOG, build_registry, make_definition
from dealscope.pipeline.agents.context_enrichment import ContextEnrichmentAgent
from dealscope.pipeline.agents.prompting import document_excerpts, previous_findings
from dealscope.pipeline.agents.sector_experts import SECTOR_FOCUS
from dealscope.pipeline.agents.synthesis import (
    DealScoreOutput,
    DealScorerAgent,
    MemoGeneratorAgent,
)
from dealscope.pipeline.errors import ValidationError
from dealscope.pipeline.orchestrator import REQUIRED_AGENTS
from dealscope.pipeline.plugin_kit.models import AgentDefinition


def _respond(client, payload: dict) -> None:
    client.complete.return_value = LLMResponse(
        content=json.dumps(payload),
        input_tokens=1_500,
        output_tokens=600,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=1_200,
    )


def _result(name: str, data: dict) -> AgentResult:
    return AgentResult(agent_name=name, success=True, data=data)


class TestAnalystAgent:
    @pytest.fixture
    def agent(self, mock_llm_client) -> AnalystAgent:
        definition = AgentDefinition(
            agent_id=AgentId.FINANCIAL_AUDITOR,
            tier=Tier.ANALYSIS,
            description="Financial auditor",
        )
        return AnalystAgent(
            definition, MagicMock(return_value=mock_llm_client), "- Burn and runway"
        )

    @pytest.mark.asyncio
    async def test_valid_output(self, agent, mock_llm_client, sample_context):
        _respond(
            mock_llm_client,
            {
                "score": 41,
                "summary": "Thin runway",
                "details": {"burn_analysis": {"runway_months": 5}},
            },
        )
        output = await agent.run(sample_context)
        assert output.data["score"] == 41
        assert output.data["details"]["burn_analysis"]["runway_months"] == 5
        assert output.cost > 0

    @pytest.mark.asyncio
    async def test_score_out_of_range_is_validation_error(
        self, agent, mock_llm_client, sample_context
    ):
        _respond(mock_llm_client, {"score": 130, "summary": "x"})
        with pytest.raises(ValidationError):
            await agent.run(sample_context)

    def test_system_prompt_carries_focus(self, agent):
        assert "Financial auditor" in agent.system_prompt
        assert "- Burn and runway" in agent.system_prompt

    def test_prompt_includes_context(self, agent, sample_context, make_current_fact):
        context = sample_context.with_facts([make_current_fact("financial.arr", 600_000)])
        context = context.with_enrichment({"market": {"cagr": 14}})
        prompt = agent.build_prompt(context)
        assert "Acme Seed" in prompt
        assert "cagr" in prompt
        assert "doc_fm" in prompt
        assert "Prior Analysis" not in prompt

    def test_output_schema_defaults(self):
        parsed = AnalystOutput(score=50, summary="ok")
        assert parsed.details == {} and parsed.red_flags == []


class TestPrompting:
    def test_document_excerpts_truncates(self, sample_documents):
        text = document_excerpts(sample_documents, limit=10)
        assert text.count("[... truncated]") == 2

    def test_document_excerpts_empty(self):
        assert document_excerpts([]) == "No document text available."

    def test_previous_findings_filters(self, sample_context):
        context = sample_context.with_results(
            {
                "financial-auditor": _result("financial-auditor", {"score": 30}),
                "gtm-analyst": _result("gtm-analyst", {"score": 70}),
                "deck-forensics": AgentResult(
                    agent_name="deck-forensics", success=False, error="boom"
                ),
            }
        )
        text = previous_findings(context, [AgentId.FINANCIAL_AUDITOR, AgentId.DECK_FORENSICS])
        assert "financial-auditor" in text
        assert "gtm-analyst" not in text
        assert "deck-forensics" not in text


class TestSynthesisAgents:
    @pytest.mark.asyncio
    async def test_deal_scorer(self, mock_llm_client, sample_context):
        definition = make_definition(AgentId.SYNTHESIS_DEAL_SCORER, Settings(_env_file=None))
        agent = DealScorerAgent(definition, MagicMock(return_value=mock_llm_client), "")
        _respond(
            mock_llm_client,
            {"score": 67, "verdict": "consider", "rationale": "Good team, early traction"},
        )
        context = sample_context.with_results(
            {"financial-auditor": _result("financial-auditor", {"score": 55})}
        )
        output = await agent.run(context)
        assert output.data["verdict"] == "consider"
        assert agent.output_schema is DealScoreOutput
        prompt = mock_llm_client.complete.call_args.kwargs["messages"][0].content
        assert "financial-auditor" in prompt

    @pytest.mark.asyncio
    async def test_unknown_verdict_rejected(self, mock_llm_client, sample_context):
        definition = make_definition(AgentId.SYNTHESIS_DEAL_SCORER, Settings(_env_file=None))
        agent = DealScorerAgent(definition, MagicMock(return_value=mock_llm_client), "")
        _respond(mock_llm_client, {"score": 67, "verdict": "maybe", "rationale": "?"})
        with pytest.raises(ValidationError):
            await agent.run(sample_context)

    def test_memo_prompt_includes_score(self, mock_llm_client, sample_context):
        definition = make_definition(AgentId.MEMO_GENERATOR, Settings(_env_file=None))
        agent = MemoGeneratorAgent(definition, MagicMock(return_value=mock_llm_client), "")
        context = sample_context.with_results(
            {
                "synthesis-deal-scorer": _result(
                    "synthesis-deal-scorer",
                    {"score": 72, "verdict": "pass", "rationale": "Strong NRR"},
                )
            }
        )
        prompt = agent.build_prompt(context)
        assert "Score 72/100, verdict pass" in prompt
        assert "No deal score available." in agent.build_prompt(sample_context)


class TestCatalog:
    def test_every_agent_catalogued(self):
        assert set(AGENT_CATALOG) == set(AgentId)
        assert set(SECTOR_FOCUS) == set(TIER3_AGENTS)

    def test_definition_uses_settings(self):
        settings = Settings(_env_file=None, agent_timeout_ms=30_000, agent_max_retries=1)
        definition = make_definition(AgentId.FINANCIAL_AUDITOR, settings)
        assert definition.timeout_ms == 30_000
        assert definition.max_retries == 1
        assert definition.tier == Tier.ANALYSIS
        assert definition.complexity == "complex"

    def test_scorer_depends_on_batch(self):
        deps = AGENT_CATALOG[AgentId.SYNTHESIS_DEAL_SCORER].dependencies
        assert set(deps) == {
            AgentId.CONTRADICTION_DETECTOR,
            AgentId.SCENARIO_MODELER,
            AgentId.DEVILS_ADVOCATE,
        }
        assert AGENT_CATALOG[AgentId.MEMO_GENERATOR].dependencies == (
            AgentId.SYNTHESIS_DEAL_SCORER,
        )

    def test_build_registry(self):
        registry = build_registry(Settings(_env_file=None), MagicMock())
        registry.validate_complete(REQUIRED_AGENTS)
        assert len(registry) == len(AgentId)
        assert len(registry.for_tier(Tier.ANALYSIS)) == len(TIER1_AGENTS)
        assert isinstance(registry.get(AgentId.CONTEXT_ENRICHMENT), ContextEnrichmentAgent)

    def test_build_registry_returns_fresh_instances(self):
        settings = Settings(_env_file=None)
        first = build_registry(settings, MagicMock())
        second = build_registry(settings, MagicMock())
        assert first.get(AgentId.GTM_ANALYST) is not second.get(AgentId.GTM_ANALYST)
