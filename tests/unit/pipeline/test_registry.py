# tests/unit/pipeline/test_registry.py — v1
"""Tests for pipeline/registry.py and pipeline/dag_builder.py."""

from __future__ import annotations

import pytest

from dealscope.config.agents import AgentId, Tier
from dealscope.pipeline.dag_builder import DAGError, build_dag
from dealscope.pipeline.registry import AgentRegistry, RegistryError

A = AgentId


class TestAgentRegistry:
    def test_register_and_get(self, fake_agent):
        agent = fake_agent(A.DECK_FORENSICS)
        registry = AgentRegistry([agent])
        assert registry.get(A.DECK_FORENSICS) is agent
        assert A.DECK_FORENSICS in registry
        assert len(registry) == 1

    def test_string_lookup_matches_enum(self, fake_agent):
        registry = AgentRegistry([fake_agent(A.DECK_FORENSICS)])
        assert "deck-forensics" in registry

    def test_get_missing(self):
        with pytest.raises(RegistryError, match="gtm-analyst"):
            AgentRegistry().get(A.GTM_ANALYST)

    def test_duplicate_rejected(self, fake_agent):
        registry = AgentRegistry([fake_agent(A.DECK_FORENSICS)])
        with pytest.raises(RegistryError, match="already registered"):
            registry.register(fake_agent(A.DECK_FORENSICS))

    def test_replace(self, fake_agent):
        registry = AgentRegistry([fake_agent(A.DECK_FORENSICS)])
        replacement = fake_agent(A.DECK_FORENSICS, data={"score": 1})
        registry.register(replacement, replace=True)
        assert registry.get(A.DECK_FORENSICS) is replacement

    def test_for_tier(self, fake_agent):
        registry = AgentRegistry(
            [
                fake_agent(A.DOCUMENT_EXTRACTOR, Tier.EXTRACTION),
                fake_agent(A.DECK_FORENSICS),
                fake_agent(A.GTM_ANALYST),
            ]
        )
        assert [a.name for a in registry.for_tier(Tier.ANALYSIS)] == [
            "deck-forensics",
            "gtm-analyst",
        ]
        assert registry.for_tier(Tier.SPECIALIST) == []

    def test_validate_complete(self, fake_agent):
        registry = AgentRegistry([fake_agent(A.DECK_FORENSICS)])
        registry.validate_complete([A.DECK_FORENSICS])
        with pytest.raises(RegistryError) as excinfo:
            registry.validate_complete([A.DECK_FORENSICS, A.MEMO_GENERATOR, A.GTM_ANALYST])
        assert "memo-generator" in str(excinfo.value)
        assert "gtm-analyst" in str(excinfo.value)

    def test_dependency_map_drops_out_of_scope(self, fake_agent):
        registry = AgentRegistry(
            [
                fake_agent(A.CONTRADICTION_DETECTOR, Tier.SYNTHESIS, dependencies=(A.DECK_FORENSICS,)),
                fake_agent(
                    A.MEMO_GENERATOR,
                    Tier.SYNTHESIS,
                    dependencies=(A.CONTRADICTION_DETECTOR, A.FINANCIAL_AUDITOR),
                ),
            ]
        )
        assert registry.dependency_map([A.CONTRADICTION_DETECTOR, A.MEMO_GENERATOR]) == {
            A.CONTRADICTION_DETECTOR: [],
            A.MEMO_GENERATOR: [A.CONTRADICTION_DETECTOR],
        }


class TestBuildDag:
    def test_empty(self):
        plan = build_dag({})
        assert plan.stages == []
        assert plan.total_agents == 0

    def test_independent_agents_share_a_stage(self):
        plan = build_dag({A.DECK_FORENSICS: [], A.GTM_ANALYST: []})
        assert plan.stages == [[A.DECK_FORENSICS, A.GTM_ANALYST]]

    def test_synthesis_staging(self):
        plan = build_dag(
            {
                A.CONTRADICTION_DETECTOR: [],
                A.SCENARIO_MODELER: [],
                A.DEVILS_ADVOCATE: [],
                A.SYNTHESIS_DEAL_SCORER: [
                    A.CONTRADICTION_DETECTOR,
                    A.SCENARIO_MODELER,
                    A.DEVILS_ADVOCATE,
                ],
                A.MEMO_GENERATOR: [A.SYNTHESIS_DEAL_SCORER],
            }
        )
        assert plan.stages == [
            [A.CONTRADICTION_DETECTOR, A.SCENARIO_MODELER, A.DEVILS_ADVOCATE],
            [A.SYNTHESIS_DEAL_SCORER],
            [A.MEMO_GENERATOR],
        ]
        assert plan.total_agents == 5
        assert plan.flat_order[-1] == A.MEMO_GENERATOR

    def test_stage_order_follows_input_order(self):
        plan = build_dag(
            {A.DECK_FORENSICS: [], A.MEMO_GENERATOR: [A.DECK_FORENSICS], A.GTM_ANALYST: [A.DECK_FORENSICS]}
        )
        assert plan.stages[1] == [A.MEMO_GENERATOR, A.GTM_ANALYST]

    def test_missing_dependency(self):
        with pytest.raises(DAGError, match="not in the plan"):
            build_dag({A.MEMO_GENERATOR: [A.SYNTHESIS_DEAL_SCORER]})

    def test_cycle(self):
        with pytest.raises(DAGError, match="Cycle detected"):
            build_dag(
                {
                    A.DECK_FORENSICS: [],
                    A.SCENARIO_MODELER: [A.DEVILS_ADVOCATE],
                    A.DEVILS_ADVOCATE: [A.SCENARIO_MODELER],
                }
            )
