# src/config/agents.py — v2
"""Declarative agent configuration.

The closed set of agent identifiers, tier membership and the sector to
specialist-expert lookup. Agents are addressed by AgentId everywhere; the
string values are the stable names used in results maps and logs.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class Tier(IntEnum):
    """Pipeline stage. Tiers run strictly in order."""

    EXTRACTION = 0
    ANALYSIS = 1
    SYNTHESIS = 2
    SPECIALIST = 3


class AgentId(str, Enum):
    """Closed enumeration of every agent the pipeline can run."""

    # Tier 0
    DOCUMENT_EXTRACTOR = "document-extractor"
    CONTEXT_ENRICHMENT = "context-enrichment"
    COHERENCE_CHECKER = "coherence-checker"

    # Tier 1
    DECK_FORENSICS = "deck-forensics"
    FINANCIAL_AUDITOR = "financial-auditor"
    MARKET_INTELLIGENCE = "market-intelligence"
    COMPETITIVE_INTEL = "competitive-intel"
    TEAM_INVESTIGATOR = "team-investigator"
    TECHNICAL_DD = "technical-dd"
    LEGAL_REGULATORY = "legal-regulatory"
    CAP_TABLE_AUDITOR = "cap-table-auditor"
    GTM_ANALYST = "gtm-analyst"
    CUSTOMER_INTEL = "customer-intel"
    EXIT_STRATEGIST = "exit-strategist"
    QUESTION_MASTER = "question-master"

    # Tier 2
    CONTRADICTION_DETECTOR = "contradiction-detector"
    SCENARIO_MODELER = "scenario-modeler"
    DEVILS_ADVOCATE = "devils-advocate"
    SYNTHESIS_DEAL_SCORER = "synthesis-deal-scorer"
    MEMO_GENERATOR = "memo-generator"

    # Tier 3
    SAAS_EXPERT = "saas-expert"
    MARKETPLACE_EXPERT = "marketplace-expert"
    FINTECH_EXPERT = "fintech-expert"
    HEALTHTECH_EXPERT = "healthtech-expert"
    DEEPTECH_EXPERT = "deeptech-expert"
    CLIMATE_EXPERT = "climate-expert"
    HARDWARE_EXPERT = "hardware-expert"
    GAMING_EXPERT = "gaming-expert"
    CONSUMER_EXPERT = "consumer-expert"


# Tier 0 runs in this exact order.
TIER0_SEQUENCE: list[AgentId] = [
    AgentId.DOCUMENT_EXTRACTOR,
    AgentId.CONTEXT_ENRICHMENT,
    AgentId.COHERENCE_CHECKER,
]

TIER1_AGENTS: list[AgentId] = [
    AgentId.DECK_FORENSICS,
    AgentId.FINANCIAL_AUDITOR,
    AgentId.MARKET_INTELLIGENCE,
    AgentId.COMPETITIVE_INTEL,
    AgentId.TEAM_INVESTIGATOR,
    AgentId.TECHNICAL_DD,
    AgentId.LEGAL_REGULATORY,
    AgentId.CAP_TABLE_AUDITOR,
    AgentId.GTM_ANALYST,
    AgentId.CUSTOMER_INTEL,
    AgentId.EXIT_STRATEGIST,
    AgentId.QUESTION_MASTER,
]

# Staging inside Tier 2 is derived from each agent's declared dependencies.
TIER2_AGENTS: list[AgentId] = [
    AgentId.CONTRADICTION_DETECTOR,
    AgentId.SCENARIO_MODELER,
    AgentId.DEVILS_ADVOCATE,
    AgentId.SYNTHESIS_DEAL_SCORER,
    AgentId.MEMO_GENERATOR,
]

# Sector expert -> lowercase sector aliases matched against deal.sector.
SECTOR_EXPERTS: dict[AgentId, list[str]] = {
    AgentId.SAAS_EXPERT: ["saas", "b2b software", "software", "enterprise software"],
    AgentId.MARKETPLACE_EXPERT: ["marketplace", "platform", "two-sided"],
    AgentId.FINTECH_EXPERT: ["fintech", "payments", "banking", "insurtech", "lending"],
    AgentId.HEALTHTECH_EXPERT: ["healthtech", "medtech", "biotech", "health", "digital health"],
    AgentId.DEEPTECH_EXPERT: ["deeptech", "ai", "machine learning", "quantum", "robotics"],
    AgentId.CLIMATE_EXPERT: ["climate", "cleantech", "energy", "greentech", "sustainability"],
    AgentId.HARDWARE_EXPERT: ["hardware", "iot", "devices", "electronics"],
    AgentId.GAMING_EXPERT: ["gaming", "games", "esports", "interactive entertainment"],
    AgentId.CONSUMER_EXPERT: ["consumer", "d2c", "e-commerce", "retail", "cpg"],
}

TIER3_AGENTS: list[AgentId] = list(SECTOR_EXPERTS)

TIER_AGENTS: dict[Tier, list[AgentId]] = {
    Tier.EXTRACTION: TIER0_SEQUENCE,
    Tier.ANALYSIS: TIER1_AGENTS,
    Tier.SYNTHESIS: TIER2_AGENTS,
    Tier.SPECIALIST: TIER3_AGENTS,
}


def select_sector_expert(sector: str | None) -> AgentId | None:
    """Pick the specialist for a deal sector.

    Exact alias match wins; otherwise the first expert whose alias appears
    inside the sector string. Returns None when nothing matches.
    """
    if not sector:
        return None
    normalized = sector.strip().lower()

    for expert, aliases in SECTOR_EXPERTS.items():
        if normalized in aliases:
            return expert

    for expert, aliases in SECTOR_EXPERTS.items():
        if any(_contains_word(normalized, alias) for alias in aliases):
            return expert

    return None


def _contains_word(text: str, alias: str) -> bool:
    padded = f" {text.replace('/', ' ').replace(',', ' ')} "
    return f" {alias} " in padded
