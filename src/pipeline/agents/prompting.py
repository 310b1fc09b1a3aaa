# src/pipeline/agents/prompting.py — v1
"""Prompt building blocks shared by the LLM-backed agents."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from dealscope.facts.formatting import format_fact_store

if TYPE_CHECKING:
    from dealscope.config.agents import AgentId
    from dealscope.core.models import Deal, Document, ExecutionContext

MAX_DOCUMENT_CHARS = 30_000
MAX_RESULT_CHARS = 4_000


def describe_deal(deal: Deal) -> str:
    lines = [f"## Deal: {deal.name}"]
    fields = {
        "Company": deal.company_name,
        "Sector": deal.sector,
        "Stage": deal.stage,
        "Geography": deal.geography,
        "Website": deal.website,
        "ARR (declared)": deal.arr,
        "Growth rate (declared)": deal.growth_rate,
        "Amount requested": deal.amount_requested,
        "Pre-money valuation": deal.valuation_pre,
    }
    for label, value in fields.items():
        if value is not None:
            lines.append(f"- {label}: {value}")
    if deal.description:
        lines.append(f"\n{deal.description}")
    if deal.founders:
        lines.append("\n### Founders")
        for f in deal.founders:
            role = f" ({f.role})" if f.role else ""
            background = f": {f.background}" if f.background else ""
            lines.append(f"- {f.name}{role}{background}")
    return "\n".join(lines)


def document_excerpts(documents: Iterable[Document], limit: int = MAX_DOCUMENT_CHARS) -> str:
    """Concatenate document texts, truncating each to ``limit`` characters."""
    blocks = []
    for doc in documents:
        text = doc.extracted_text.strip()
        if not text:
            continue
        if len(text) > limit:
            text = text[:limit] + "\n[... truncated]"
        blocks.append(f"### Document {doc.id}: {doc.name} ({doc.type})\n{text}")
    return "\n\n".join(blocks) or "No document text available."


def previous_findings(
    context: ExecutionContext, agent_ids: Iterable[AgentId] | None = None
) -> str:
    """Summaries of earlier successful results, for agents that build on them."""
    results = context.successful_results()
    wanted = {a.value for a in agent_ids} if agent_ids is not None else None
    blocks = []
    for name, result in results.items():
        if wanted is not None and name not in wanted:
            continue
        blocks.append(f"### {name}\n{_compact(result.data or {})}")
    return "\n\n".join(blocks) or "No prior analysis available."


def enrichment_block(context: ExecutionContext) -> str:
    if not context.enrichment:
        return "No external context available."
    return _compact(dict(context.enrichment))


def standard_context(context: ExecutionContext) -> str:
    return "\n\n".join(
        [
            describe_deal(context.deal),
            format_fact_store(context.facts),
            "## External Context\n" + enrichment_block(context),
        ]
    )


def _compact(data: dict[str, Any]) -> str:
    text = json.dumps(data, ensure_ascii=False, default=str)
    if len(text) > MAX_RESULT_CHARS:
        text = text[:MAX_RESULT_CHARS] + " ..."
    return text
