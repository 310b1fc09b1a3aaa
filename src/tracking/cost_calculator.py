# src/tracking/cost_calculator.py — v2
"""Cost calculation from LLM usage.

Computes estimated USD cost per LLM call and aggregates agent results into a
per-agent and per-tier breakdown.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from dealscope.tracking.models import AgentCostStats, ModelPricing, RunCostSummary

if TYPE_CHECKING:
    from dealscope.core.models import AgentResult
    from dealscope.llm.models import LLMResponse

# Default pricing per 1M tokens
DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-20250514": ModelPricing(
        model="claude-sonnet-4-20250514",
        input_price_per_1m=3.0, output_price_per_1m=15.0,
        cache_read_per_1m=0.3, cache_write_per_1m=3.75,
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001",
        input_price_per_1m=0.80, output_price_per_1m=4.0,
        cache_read_per_1m=0.08, cache_write_per_1m=1.0,
    ),
    "claude-opus-4-20250514": ModelPricing(
        model="claude-opus-4-20250514",
        input_price_per_1m=15.0, output_price_per_1m=75.0,
        cache_read_per_1m=1.5, cache_write_per_1m=18.75,
    ),
    "gpt-4o": ModelPricing(
        model="gpt-4o",
        input_price_per_1m=2.50, output_price_per_1m=10.0,
    ),
    "gpt-4o-mini": ModelPricing(
        model="gpt-4o-mini",
        input_price_per_1m=0.15, output_price_per_1m=0.60,
    ),
}


def compute_response_cost(
    response: LLMResponse, pricing: dict[str, ModelPricing] | None = None
) -> float:
    """Compute estimated cost for a single LLM call in USD.

    Unknown models cost 0.0; providers sometimes return dated model ids, so a
    prefix match against the pricing table is tried before giving up.
    """
    pricing = pricing or DEFAULT_PRICING
    p = pricing.get(response.model)
    if p is None:
        p = next(
            (v for k, v in pricing.items() if response.model.startswith(k)), None
        )
    if p is None:
        return 0.0

    return (response.input_tokens * p.input_price_per_1m / 1_000_000
            + response.output_tokens * p.output_price_per_1m / 1_000_000
            + response.cache_read_tokens * p.cache_read_per_1m / 1_000_000
            + response.cache_write_tokens * p.cache_write_per_1m / 1_000_000)


def summarize_run_costs(
    results: dict[str, AgentResult],
    tiers: dict[str, int] | None = None,
) -> RunCostSummary:
    """Aggregate settled agent results into a cost summary.

    Args:
        results: agent name -> AgentResult.
        tiers: Optional agent name -> tier mapping for the per-tier breakdown.
    """
    tiers = tiers or {}
    by_tier: dict[int, float] = defaultdict(float)
    by_agent: dict[str, AgentCostStats] = {}

    for name, result in results.items():
        tier = tiers.get(name)
        by_agent[name] = AgentCostStats(
            agent=name,
            tier=tier,
            success=result.success,
            attempts=result.attempts,
            cost_usd=result.cost,
            execution_time_ms=result.execution_time_ms,
        )
        if tier is not None:
            by_tier[tier] += result.cost

    most_expensive = max(by_agent.values(), key=lambda s: s.cost_usd, default=None)
    return RunCostSummary(
        total_cost_usd=sum(s.cost_usd for s in by_agent.values()),
        total_agent_time_ms=sum(s.execution_time_ms for s in by_agent.values()),
        by_agent=by_agent,
        by_tier=dict(by_tier),
        most_expensive_agent=(
            most_expensive.agent
            if most_expensive is not None and most_expensive.cost_usd > 0
            else None
        ),
    )
