# src/facts/taxonomy.py — v1
"""Canonical fact-key taxonomy, value typing and display formatting.

Every fact the store accepts uses one of these keys. The key prefix fixes
the category; the definition fixes the expected value type.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

from dealscope.facts.models import FactCategory, FactKeyDefinition, FactType


class UnknownFactKeyError(KeyError):
    """Raised when a fact key is not part of the taxonomy."""


_PREFIX_CATEGORY: dict[str, FactCategory] = {
    "financial": FactCategory.FINANCIAL,
    "traction": FactCategory.TRACTION,
    "team": FactCategory.TEAM,
    "market": FactCategory.MARKET,
    "product": FactCategory.PRODUCT,
    "competition": FactCategory.COMPETITION,
    "legal": FactCategory.LEGAL,
    "other": FactCategory.OTHER,
}


def _k(
    key: str,
    type_: FactType,
    description: str,
    unit: str | None = None,
    enum_values: tuple[str, ...] | None = None,
    temporal: bool = False,
) -> FactKeyDefinition:
    return FactKeyDefinition(
        key=key,
        category=_PREFIX_CATEGORY[key.split(".", 1)[0]],
        type=type_,
        description=description,
        unit=unit,
        enum_values=enum_values,
        is_temporal=temporal,
    )


_DEFINITIONS: list[FactKeyDefinition] = [
    # Financial
    _k("financial.arr", "currency", "Annual Recurring Revenue", "EUR", temporal=True),
    _k("financial.mrr", "currency", "Monthly Recurring Revenue", "EUR", temporal=True),
    _k("financial.revenue", "currency", "Total Revenue (non-recurring)", "EUR", temporal=True),
    _k("financial.revenue_growth_yoy", "percentage", "Year-over-year revenue growth"),
    _k("financial.revenue_growth_mom", "percentage", "Month-over-month revenue growth"),
    _k("financial.burn_rate", "currency", "Monthly burn rate", "EUR/month", temporal=True),
    _k("financial.runway_months", "number", "Months of runway remaining", temporal=True),
    _k("financial.gross_margin", "percentage", "Gross margin percentage"),
    _k("financial.net_margin", "percentage", "Net margin percentage"),
    _k("financial.ebitda", "currency", "EBITDA", "EUR"),
    _k("financial.cash_position", "currency", "Current cash in bank", "EUR"),
    _k("financial.debt", "currency", "Total debt", "EUR"),
    _k("financial.valuation_pre", "currency", "Pre-money valuation", "EUR"),
    _k("financial.valuation_post", "currency", "Post-money valuation", "EUR"),
    _k("financial.valuation_multiple", "number", "Valuation multiple (x ARR)"),
    _k("financial.amount_raised_total", "currency", "Total amount raised to date", "EUR"),
    _k("financial.amount_raising", "currency", "Amount raising in current round", "EUR"),
    _k("financial.dilution_current_round", "percentage", "Dilution in current round"),
    _k("financial.post_money_ownership_founders", "percentage", "Founder ownership post-money"),
    # Traction
    _k("traction.churn_monthly", "percentage", "Monthly churn rate", temporal=True),
    _k("traction.churn_annual", "percentage", "Annual churn rate"),
    _k("traction.nrr", "percentage", "Net Revenue Retention", temporal=True),
    _k("traction.grr", "percentage", "Gross Revenue Retention"),
    _k("traction.cac", "currency", "Customer Acquisition Cost", "EUR"),
    _k("traction.ltv", "currency", "Customer Lifetime Value", "EUR"),
    _k("traction.ltv_cac_ratio", "number", "LTV/CAC ratio"),
    _k("traction.payback_months", "number", "CAC payback period in months"),
    _k("traction.customers_count", "number", "Total paying customers", temporal=True),
    _k("traction.users_count", "number", "Total users (free + paid)", temporal=True),
    _k("traction.dau", "number", "Daily Active Users"),
    _k("traction.mau", "number", "Monthly Active Users"),
    _k("traction.conversion_rate", "percentage", "Free to paid conversion rate"),
    _k("traction.arpu", "currency", "Average Revenue Per User", "EUR"),
    _k("traction.arppu", "currency", "Average Revenue Per Paying User", "EUR"),
    # Team
    _k("team.size", "number", "Total team size", temporal=True),
    _k("team.founders_count", "number", "Number of founders"),
    _k("team.technical_count", "number", "Number of technical team members"),
    _k("team.technical_ratio", "percentage", "Technical team as % of total"),
    _k("team.ceo.name", "string", "CEO name"),
    _k("team.ceo.linkedin", "string", "CEO LinkedIn URL"),
    _k("team.ceo.background", "string", "CEO professional background"),
    _k("team.ceo.previous_exits", "number", "Number of previous exits for CEO"),
    _k("team.cto.name", "string", "CTO name"),
    _k("team.cto.linkedin", "string", "CTO LinkedIn URL"),
    _k("team.cto.background", "string", "CTO professional background"),
    _k("team.advisors_count", "number", "Number of advisors"),
    _k("team.advisors", "array", "List of advisors with backgrounds"),
    _k("team.vesting_months", "number", "Vesting period in months"),
    _k("team.cliff_months", "number", "Cliff period in months"),
    # Market
    _k("market.tam", "currency", "Total Addressable Market", "EUR"),
    _k("market.sam", "currency", "Serviceable Addressable Market", "EUR"),
    _k("market.som", "currency", "Serviceable Obtainable Market", "EUR"),
    _k("market.cagr", "percentage", "Market CAGR"),
    _k("market.geography_primary", "string", "Primary geographic market"),
    _k("market.geography_expansion", "array", "Expansion markets planned"),
    _k("market.segment", "string", "Target market segment"),
    _k("market.vertical", "string", "Industry vertical"),
    _k("market.b2b_or_b2c", "enum", "Business model type", enum_values=("B2B", "B2C", "B2B2C")),
    _k("market.timing_assessment", "string", "Market timing assessment"),
    # Product
    _k("product.name", "string", "Product name"),
    _k("product.tagline", "string", "Product tagline/one-liner"),
    _k(
        "product.stage", "enum", "Product stage",
        enum_values=("idea", "mvp", "beta", "launched", "scaling"),
    ),
    _k("product.launch_date", "date", "Product launch date"),
    _k("product.tech_stack", "array", "Technology stack"),
    _k("product.moat", "string", "Competitive moat/defensibility"),
    _k("product.ip_patents_count", "number", "Number of patents filed/granted"),
    _k("product.nps", "number", "Net Promoter Score"),
    _k("product.time_to_value_days", "number", "Time to value for customers in days"),
    _k("product.integration_count", "number", "Number of integrations available"),
    # Competition
    _k("competition.main_competitor", "string", "Main competitor name"),
    _k("competition.competitors_count", "number", "Number of direct competitors"),
    _k("competition.competitors_list", "array", "List of competitor names"),
    _k("competition.competitors_funded", "array", "Funded competitors with amounts"),
    _k("competition.differentiation", "string", "Key differentiator vs competition"),
    _k(
        "competition.market_position", "enum", "Market position",
        enum_values=("leader", "challenger", "follower", "niche"),
    ),
    _k(
        "competition.switching_cost", "enum", "Customer switching cost",
        enum_values=("low", "medium", "high"),
    ),
    _k(
        "competition.big_tech_threat", "enum", "Big Tech threat level",
        enum_values=("none", "low", "medium", "high", "critical"),
    ),
    # Legal
    _k("legal.incorporation_country", "string", "Country of incorporation"),
    _k("legal.incorporation_date", "date", "Date of incorporation"),
    _k("legal.legal_structure", "string", "Legal structure (SAS, SARL, etc.)"),
    _k("legal.patents_filed", "number", "Patents filed"),
    _k("legal.patents_granted", "number", "Patents granted"),
    _k("legal.pending_litigation", "boolean", "Any pending litigation"),
    _k("legal.regulatory_approvals", "array", "Regulatory approvals obtained"),
    _k("legal.compliance_certifications", "array", "Compliance certifications (SOC2, GDPR, etc.)"),
    # Other
    _k("other.founding_date", "date", "Company founding date"),
    _k("other.headquarters", "string", "Headquarters location"),
    _k("other.website", "string", "Company website URL"),
    _k("other.sector", "string", "Primary sector/industry"),
]

FACT_KEYS: dict[str, FactKeyDefinition] = {d.key: d for d in _DEFINITIONS}

NUMERIC_TYPES: frozenset[str] = frozenset({"currency", "percentage", "number"})


def get_fact_key_definition(key: str) -> FactKeyDefinition | None:
    return FACT_KEYS.get(key)


def require_fact_key(key: str) -> FactKeyDefinition:
    definition = FACT_KEYS.get(key)
    if definition is None:
        raise UnknownFactKeyError(key)
    return definition


def keys_for_category(category: FactCategory) -> list[str]:
    return [d.key for d in _DEFINITIONS if d.category == category]


def is_numeric_key(key: str) -> bool:
    definition = FACT_KEYS.get(key)
    return definition is not None and definition.type in NUMERIC_TYPES


def validate_fact_value(definition: FactKeyDefinition, value: Any) -> str | None:
    """Check a candidate value against its key's declared type.

    Returns None when valid, otherwise a short description of the mismatch.
    Values are never coerced: "500k" for a currency key is a mismatch.
    """
    expected = definition.type

    if value is None:
        return "value is null"

    if expected in NUMERIC_TYPES:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"expected {expected} number, got {type(value).__name__}"
        if not math.isfinite(value):
            return "value is not finite"
        return None

    if expected == "boolean":
        if not isinstance(value, bool):
            return f"expected boolean, got {type(value).__name__}"
        return None

    if expected == "array":
        if not isinstance(value, list):
            return f"expected array, got {type(value).__name__}"
        return None

    if expected == "date":
        if not isinstance(value, str):
            return f"expected ISO-8601 date string, got {type(value).__name__}"
        if _parse_iso_date(value) is None:
            return f"not an ISO-8601 date: {value!r}"
        return None

    if expected == "enum":
        allowed = definition.enum_values or ()
        if not isinstance(value, str) or value not in allowed:
            return f"expected one of {list(allowed)}, got {value!r}"
        return None

    # string
    if not isinstance(value, str) or not value.strip():
        return f"expected non-empty string, got {type(value).__name__}"
    return None


def _parse_iso_date(value: str) -> date | None:
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def parse_fact_date(value: Any) -> date | None:
    """Parse a stored date fact value, or None when it is not a date."""
    if not isinstance(value, str):
        return None
    return _parse_iso_date(value)


def format_display_value(definition: FactKeyDefinition | None, value: Any) -> str:
    """Human-readable rendering used for display_value."""
    if definition is None:
        return str(value)

    if definition.type == "currency" and isinstance(value, (int, float)):
        unit = definition.unit or "EUR"
        symbol = "€" if unit.startswith("EUR") else f"{unit} "
        suffix = unit[3:] if unit.startswith("EUR") else ""
        return f"{_compact_number(value, symbol)}{suffix}"

    if definition.type == "percentage" and isinstance(value, (int, float)):
        return f"{value:g}%"

    if definition.type == "number" and isinstance(value, (int, float)):
        return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"

    if definition.type == "boolean":
        return "Yes" if value else "No"

    if definition.type == "array" and isinstance(value, list):
        return ", ".join(str(v) for v in value)

    return str(value)


def _compact_number(value: float, symbol: str) -> str:
    sign = "-" if value < 0 else ""
    amount = abs(value)
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if amount >= threshold:
            scaled = amount / threshold
            text = f"{scaled:.1f}".rstrip("0").rstrip(".")
            return f"{sign}{symbol}{text}{suffix}"
    return f"{sign}{symbol}{amount:g}"
