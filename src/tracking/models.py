# src/tracking/models.py — v2
"""Tracking domain models: ModelPricing, AgentCostStats, RunCostSummary."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ModelPricing(BaseModel):
    """LLM model pricing configuration (USD per 1M tokens)."""

    model: str
    input_price_per_1m: float
    output_price_per_1m: float
    cache_read_per_1m: float = 0.0
    cache_write_per_1m: float = 0.0


class AgentCostStats(BaseModel):
    """Per-agent cost and timing for a single analysis run."""

    agent: str
    tier: int | None = None
    success: bool
    attempts: int = 1
    cost_usd: float = 0.0
    execution_time_ms: int = 0


class RunCostSummary(BaseModel):
    """Cost breakdown of one analysis run."""

    total_cost_usd: float = 0.0
    total_agent_time_ms: int = 0
    by_agent: dict[str, AgentCostStats] = Field(default_factory=dict)
    by_tier: dict[int, float] = Field(default_factory=dict)
    most_expensive_agent: str | None = None
