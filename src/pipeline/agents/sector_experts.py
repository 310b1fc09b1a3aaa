# src/pipeline/agents/sector_experts.py — v1
"""Tier 3 sector experts: sector-specific benchmarks on top of the full analysis."""

from __future__ import annotations

from dealscope.config.agents import AgentId
from dealscope.pipeline.agents.analyst import AnalystAgent

SECTOR_FOCUS: dict[AgentId, str] = {
    AgentId.SAAS_EXPERT: (
        "- NRR, GRR and logo churn against SaaS benchmarks\n"
        "- Rule of 40, burn multiple, CAC payback\n"
        "- Expansion revenue and pricing power"
    ),
    AgentId.MARKETPLACE_EXPERT: (
        "- GMV, take rate and contribution margin per transaction\n"
        "- Liquidity on both sides, cold-start strategy\n"
        "- Disintermediation risk and network effects"
    ),
    AgentId.FINTECH_EXPERT: (
        "- Licensing (payment institution, EMI, lending) and regulator exposure\n"
        "- Fraud, credit losses and capital requirements\n"
        "- Banking partner concentration"
    ),
    AgentId.HEALTHTECH_EXPERT: (
        "- Regulatory path (CE marking, MDR, FDA) and clinical evidence\n"
        "- Reimbursement model and payer adoption\n"
        "- Health data compliance"
    ),
    AgentId.DEEPTECH_EXPERT: (
        "- Technology readiness level and scientific risk\n"
        "- IP position and freedom to operate\n"
        "- Time and capital to commercialization"
    ),
    AgentId.CLIMATE_EXPERT: (
        "- Measurable impact and carbon accounting credibility\n"
        "- Dependence on subsidies and policy\n"
        "- Capex intensity and project finance needs"
    ),
    AgentId.HARDWARE_EXPERT: (
        "- Bill of materials, gross margin at scale\n"
        "- Manufacturing partners and supply chain risk\n"
        "- Certification and inventory financing"
    ),
    AgentId.GAMING_EXPERT: (
        "- Retention curves (D1/D7/D30) and ARPDAU\n"
        "- User acquisition cost versus LTV by channel\n"
        "- Platform dependency and content pipeline"
    ),
    AgentId.CONSUMER_EXPERT: (
        "- Brand strength, repeat purchase and cohort retention\n"
        "- Paid acquisition dependency and contribution margin\n"
        "- Retail and distribution channel economics"
    ),
}


class SectorExpertAgent(AnalystAgent):
    """Analyst that reads the complete Tier 1 and Tier 2 output."""

    document_chars = 8_000
