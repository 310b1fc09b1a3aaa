# src/facts/formatting.py — v1
"""Render current facts for agent prompts."""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable

from dealscope.facts.models import CurrentFact, FactCategory
from dealscope.facts.taxonomy import get_fact_key_definition

_CATEGORY_TITLES: dict[FactCategory, str] = {
    FactCategory.FINANCIAL: "Financial Metrics",
    FactCategory.TRACTION: "Traction & Unit Economics",
    FactCategory.TEAM: "Team",
    FactCategory.MARKET: "Market",
    FactCategory.PRODUCT: "Product",
    FactCategory.COMPETITION: "Competition",
    FactCategory.LEGAL: "Legal & Compliance",
    FactCategory.OTHER: "Other Information",
}

_SOURCE_NAMES = {
    "DATA_ROOM": "Data Room",
    "BA_OVERRIDE": "Analyst Override",
    "FINANCIAL_MODEL": "Financial Model",
    "FOUNDER_RESPONSE": "Founder",
    "PITCH_DECK": "Pitch Deck",
    "CONTEXT_ENGINE": "Context Engine",
}


def format_fact_store(facts: Iterable[CurrentFact]) -> str:
    """Markdown block grouping facts by category, disputed facts last."""
    facts = list(facts)
    if not facts:
        return "No verified facts available."

    by_category: dict[FactCategory, list[CurrentFact]] = defaultdict(list)
    for fact in facts:
        by_category[fact.category].append(fact)

    lines: list[str] = ["## Verified Facts", ""]
    for category in FactCategory:
        category_facts = by_category.get(category)
        if not category_facts:
            continue
        lines.append(f"### {_CATEGORY_TITLES[category]}")
        for fact in sorted(category_facts, key=lambda f: f.fact_key):
            line = f"- **{_label(fact.fact_key)}**: {fact.current_display_value}"
            if fact.current_confidence < 80:
                line += f" (confidence: {fact.current_confidence:g}%)"
            if fact.is_disputed:
                line += " [DISPUTED]"
            line += f" [{_SOURCE_NAMES.get(fact.current_source.value, fact.current_source.value)}]"
            lines.append(line)
        lines.append("")

    disputed = [f for f in facts if f.is_disputed and f.dispute_details is not None]
    if disputed:
        lines.append("### Disputed Facts (Require Verification)")
        for fact in disputed:
            details = fact.dispute_details
            lines.append(
                f"- **{_label(fact.fact_key)}**: current {fact.current_value!r} "
                f"({fact.current_source.value}) conflicts with "
                f"{details.conflicting_value!r} ({details.conflicting_source.value})"
            )
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def facts_as_json(facts: Iterable[CurrentFact]) -> str:
    """Compact nested JSON: {category: {key: {value, display, confidence, source}}}."""
    structured: dict[str, dict[str, dict[str, object]]] = {}
    for fact in facts:
        category, _, key = fact.fact_key.partition(".")
        entry: dict[str, object] = {
            "value": fact.current_value,
            "display": fact.current_display_value,
            "confidence": fact.current_confidence,
            "source": fact.current_source.value,
        }
        if fact.is_disputed:
            entry["disputed"] = True
        structured.setdefault(category, {})[key] = entry
    return json.dumps(structured, indent=2, default=str)


def _label(fact_key: str) -> str:
    definition = get_fact_key_definition(fact_key)
    if definition is not None:
        return definition.description
    return " ".join(part.replace("_", " ").title() for part in fact_key.split("."))
