# src/pipeline/agents/catalog.py — v1
"""Agent catalog — definitions for every AgentId and the registry builder.

``build_registry`` is the single place where agent instances are created.
Supervision parameters (timeout, retries) come from settings; dependencies
and complexity from the catalog below.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dealscope.config.agents import (
    TIER1_AGENTS,
    TIER2_AGENTS,
    TIER3_AGENTS,
    AgentId,
    Tier,
)
from dealscope.pipeline.agents.analyst import AnalystAgent
from dealscope.pipeline.agents.coherence_checker import CoherenceCheckerAgent
from dealscope.pipeline.agents.context_enrichment import (
    ContextEngine,
    ContextEnrichmentAgent,
    NullContextEngine,
)
from dealscope.pipeline.agents.document_extractor import DocumentExtractorAgent
from dealscope.pipeline.agents.sector_experts import SECTOR_FOCUS, SectorExpertAgent
from dealscope.pipeline.agents.synthesis import DealScorerAgent, MemoGeneratorAgent
from dealscope.pipeline.plugin_kit.models import AgentDefinition, Complexity
from dealscope.pipeline.registry import AgentRegistry

if TYPE_CHECKING:
    from dealscope.cache.base_cache_store import BaseCacheStore
    from dealscope.config.settings import Settings
    from dealscope.pipeline.plugin_kit.base_agent import BaseAgent, LLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentSpec:
    tier: Tier
    description: str
    focus: str = ""
    complexity: Complexity = "medium"
    dependencies: tuple[AgentId, ...] = ()


_EXTRACTION = (AgentId.DOCUMENT_EXTRACTOR,)
_TIER2_BATCH = (
    AgentId.CONTRADICTION_DETECTOR,
    AgentId.SCENARIO_MODELER,
    AgentId.DEVILS_ADVOCATE,
)

AGENT_CATALOG: dict[AgentId, AgentSpec] = {
    # Tier 0
    AgentId.DOCUMENT_EXTRACTOR: AgentSpec(
        Tier.EXTRACTION, "Extract company profile and candidate facts from deal documents",
        complexity="complex",
    ),
    AgentId.CONTEXT_ENRICHMENT: AgentSpec(
        Tier.EXTRACTION, "Fetch external context for the company", dependencies=_EXTRACTION,
    ),
    AgentId.COHERENCE_CHECKER: AgentSpec(
        Tier.EXTRACTION, "Cross-check consistency of accepted facts", dependencies=_EXTRACTION,
    ),
    # Tier 1
    AgentId.DECK_FORENSICS: AgentSpec(
        Tier.ANALYSIS, "Pitch deck forensics",
        "- Claims that are unverifiable, inflated or inconsistent across slides\n"
        "- Vanity metrics and missing standard metrics\n"
        "- Narrative quality and omissions",
        dependencies=_EXTRACTION,
    ),
    AgentId.FINANCIAL_AUDITOR: AgentSpec(
        Tier.ANALYSIS, "Financial auditor",
        "- Revenue quality, growth, margins, burn and runway\n"
        "- Unit economics (CAC, LTV, payback)\n"
        "- Valuation versus stage benchmarks: details.valuation_analysis.verdict "
        "(conservative|fair|aggressive|very_aggressive)\n"
        "- details.burn_analysis.runway_months",
        complexity="complex",
        dependencies=_EXTRACTION,
    ),
    AgentId.MARKET_INTELLIGENCE: AgentSpec(
        Tier.ANALYSIS, "Market intelligence",
        "- TAM/SAM/SOM methodology and realism\n"
        "- Market growth and timing: details.market_timing.assessment "
        "(early|good|late|too_late)",
        dependencies=_EXTRACTION,
    ),
    AgentId.COMPETITIVE_INTEL: AgentSpec(
        Tier.ANALYSIS, "Competitive intelligence",
        "- Direct and indirect competitors, funding levels\n"
        "- Differentiation and moat durability\n"
        "- Big tech threat",
        dependencies=_EXTRACTION,
    ),
    AgentId.TEAM_INVESTIGATOR: AgentSpec(
        Tier.ANALYSIS, "Team investigator",
        "- Founder-market fit, complementarity, track record\n"
        "- Key hires missing\n"
        "- details.integrity_concerns: list any verified integrity issue, else empty",
        dependencies=_EXTRACTION,
    ),
    AgentId.TECHNICAL_DD: AgentSpec(
        Tier.ANALYSIS, "Technical due diligence",
        "- Architecture, scalability and technical debt signals\n"
        "- Build versus buy, dependency on third-party models or APIs",
        dependencies=_EXTRACTION,
    ),
    AgentId.LEGAL_REGULATORY: AgentSpec(
        Tier.ANALYSIS, "Legal and regulatory analyst",
        "- details.regulatory_exposure.risk_level (low|medium|high|critical)\n"
        "- details.litigation_risk.current_litigation (true|false)\n"
        "- IP ownership and compliance certifications",
        dependencies=_EXTRACTION,
    ),
    AgentId.CAP_TABLE_AUDITOR: AgentSpec(
        Tier.ANALYSIS, "Cap table auditor",
        "- Founder ownership and dilution path\n"
        "- details.founder_dilution.founders_below_threshold (true|false)\n"
        "- Investor rights, preferences and ESOP",
        dependencies=_EXTRACTION,
    ),
    AgentId.GTM_ANALYST: AgentSpec(
        Tier.ANALYSIS, "Go-to-market analyst",
        "- Acquisition channels, sales cycle and pipeline\n"
        "- Pricing and packaging",
        dependencies=_EXTRACTION,
    ),
    AgentId.CUSTOMER_INTEL: AgentSpec(
        Tier.ANALYSIS, "Customer intelligence",
        "- Customer concentration, logos and references\n"
        "- Retention and satisfaction signals",
        dependencies=_EXTRACTION,
    ),
    AgentId.EXIT_STRATEGIST: AgentSpec(
        Tier.ANALYSIS, "Exit strategist",
        "- Likely acquirers and comparable exits\n"
        "- Return potential at the proposed valuation",
        dependencies=_EXTRACTION,
    ),
    AgentId.QUESTION_MASTER: AgentSpec(
        Tier.ANALYSIS, "Founder question master",
        "- The questions the investor must ask the founders, ranked by importance\n"
        "- Put them in questions; explain each in findings",
        complexity="simple",
        dependencies=_EXTRACTION,
    ),
    # Tier 2
    AgentId.CONTRADICTION_DETECTOR: AgentSpec(
        Tier.SYNTHESIS, "Contradiction detector",
        "- Conflicts between Tier 1 analyses, facts and documents\n"
        "- details.contradictions: list of {topic, sources, description}",
    ),
    AgentId.SCENARIO_MODELER: AgentSpec(
        Tier.SYNTHESIS, "Scenario modeler",
        "- Bear, base and bull scenarios with probabilities\n"
        "- Expected return multiple for the investor",
        complexity="complex",
    ),
    AgentId.DEVILS_ADVOCATE: AgentSpec(
        Tier.SYNTHESIS, "Devil's advocate",
        "- The strongest case against investing\n"
        "- Assumptions the other analysts accepted too easily",
    ),
    AgentId.SYNTHESIS_DEAL_SCORER: AgentSpec(
        Tier.SYNTHESIS, "Deal scorer", complexity="complex", dependencies=_TIER2_BATCH,
    ),
    AgentId.MEMO_GENERATOR: AgentSpec(
        Tier.SYNTHESIS, "Investment memo writer",
        complexity="complex",
        dependencies=(AgentId.SYNTHESIS_DEAL_SCORER,),
    ),
}

for _expert in TIER3_AGENTS:
    AGENT_CATALOG[_expert] = AgentSpec(
        Tier.SPECIALIST,
        f"{_expert.value.replace('-', ' ').title()}",
        SECTOR_FOCUS[_expert],
        dependencies=(AgentId.SYNTHESIS_DEAL_SCORER,),
    )


def make_definition(agent_id: AgentId, settings: Settings) -> AgentDefinition:
    entry = AGENT_CATALOG[agent_id]
    return AgentDefinition(
        agent_id=agent_id,
        tier=entry.tier,
        description=entry.description,
        dependencies=entry.dependencies,
        timeout_ms=settings.agent_timeout_ms,
        max_retries=settings.agent_max_retries,
        complexity=entry.complexity,
    )


def build_registry(
    settings: Settings,
    llm_provider: LLMProvider,
    context_engine: ContextEngine | None = None,
    cache: BaseCacheStore | None = None,
) -> AgentRegistry:
    """Instantiate every catalogued agent into a fresh registry."""
    agents: list[BaseAgent] = [
        DocumentExtractorAgent(
            make_definition(AgentId.DOCUMENT_EXTRACTOR, settings), llm_provider
        ),
        ContextEnrichmentAgent(
            make_definition(AgentId.CONTEXT_ENRICHMENT, settings),
            context_engine or NullContextEngine(),
            cache=cache,
            ttl_s=settings.analysis_cache_ttl_s,
        ),
        CoherenceCheckerAgent(make_definition(AgentId.COHERENCE_CHECKER, settings)),
    ]

    for agent_id in TIER1_AGENTS:
        agents.append(
            AnalystAgent(
                make_definition(agent_id, settings), llm_provider, AGENT_CATALOG[agent_id].focus
            )
        )

    for agent_id in TIER2_AGENTS:
        definition = make_definition(agent_id, settings)
        if agent_id == AgentId.SYNTHESIS_DEAL_SCORER:
            agents.append(DealScorerAgent(definition, llm_provider, ""))
        elif agent_id == AgentId.MEMO_GENERATOR:
            agents.append(MemoGeneratorAgent(definition, llm_provider, ""))
        else:
            agents.append(
                AnalystAgent(
                    definition,
                    llm_provider,
                    AGENT_CATALOG[agent_id].focus,
                    reads_results=tuple(TIER1_AGENTS),
                )
            )

    for agent_id in TIER3_AGENTS:
        agents.append(
            SectorExpertAgent(
                make_definition(agent_id, settings), llm_provider, SECTOR_FOCUS[agent_id]
            )
        )

    registry = AgentRegistry(agents)
    logger.info("Agent registry built: %d agents", len(registry))
    return registry
