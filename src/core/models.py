# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

Case-file inputs (Deal, Document), the immutable ExecutionContext handed to
every agent, agent and tier results, early warnings and the AnalysisRun
aggregate.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from dealscope.facts.models import CurrentFact


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# === CASE FILE ===


class Founder(BaseModel):
    name: str
    role: str | None = None
    linkedin_url: str | None = None
    background: str | None = None


class Document(BaseModel):
    """A deal document with its already-extracted text."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: Literal[
        "pitch_deck", "financial_model", "data_room", "founder_response", "other"
    ] = "pitch_deck"
    extracted_text: str = ""


class Deal(BaseModel):
    """Deal metadata as provided by the deal metadata provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    company_name: str | None = None
    sector: str | None = None
    stage: str | None = None
    geography: str | None = None
    description: str | None = None
    website: str | None = None
    arr: float | None = None
    growth_rate: float | None = None
    amount_requested: float | None = None
    valuation_pre: float | None = None
    founders: tuple[Founder, ...] = ()


# === EARLY WARNINGS ===

Severity = Literal["critical", "high", "medium"]

WarningCategory = Literal[
    "founder_integrity",
    "legal_existential",
    "financial_critical",
    "market_dead",
    "product_broken",
    "deal_structure",
    "data_reliability",
]

WarningRecommendation = Literal[
    "investigate", "likely_dealbreaker", "absolute_dealbreaker"
]


class EarlyWarning(BaseModel):
    """Severe finding surfaced before the pipeline finishes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"ew-{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=utcnow)
    agent_name: str
    severity: Severity
    category: WarningCategory = "deal_structure"
    title: str
    description: str
    evidence: tuple[str, ...] = ()
    confidence: float = 80.0
    recommendation: WarningRecommendation = "investigate"
    questions_to_ask: tuple[str, ...] = ()

    @property
    def is_urgent(self) -> bool:
        return self.severity in ("critical", "high")


# === AGENT RESULTS ===


class AgentResult(BaseModel):
    """Settled outcome of one agent in one run. Written once, never updated."""

    model_config = ConfigDict(frozen=True)

    agent_name: str
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_type: str | None = None
    cost: float = 0.0
    execution_time_ms: int = 0
    attempts: int = 1
    timed_out: bool = False
    early_warnings: tuple[EarlyWarning, ...] = ()


class ExecutionContext(BaseModel):
    """Immutable snapshot passed to every agent.

    Later tiers receive an extended copy; nothing is modified in place.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    deal: Deal
    documents: tuple[Document, ...] = ()
    previous_results: Mapping[str, AgentResult] = Field(default_factory=dict)
    enrichment: Mapping[str, Any] | None = None
    facts: tuple[CurrentFact, ...] = ()

    def with_results(self, results: Mapping[str, AgentResult]) -> ExecutionContext:
        merged = {**self.previous_results, **results}
        return self.model_copy(update={"previous_results": merged})

    def with_enrichment(self, enrichment: Mapping[str, Any] | None) -> ExecutionContext:
        return self.model_copy(update={"enrichment": dict(enrichment or {})})

    def with_facts(self, facts: list[CurrentFact] | tuple[CurrentFact, ...]) -> ExecutionContext:
        return self.model_copy(update={"facts": tuple(facts)})

    def result_data(self, agent_name: str) -> dict[str, Any] | None:
        """Data of a previous successful result, or None."""
        result = self.previous_results.get(agent_name)
        if result is None or not result.success:
            return None
        return result.data

    def successful_results(self) -> dict[str, AgentResult]:
        return {k: v for k, v in self.previous_results.items() if v.success}


class TierResult(BaseModel):
    """Aggregate of one tier once every agent in it has settled."""

    tier: int
    results: dict[str, AgentResult] = Field(default_factory=dict)
    total_cost: float = 0.0
    total_time_ms: int = 0
    skipped: bool = False
    skip_reason: str | None = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results.values() if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results.values() if not r.success)


class ProgressUpdate(BaseModel):
    current_agent: str
    completed_agents: int
    total_agents: int
    latest_result: AgentResult | None = None
    estimated_cost_so_far: float = 0.0


class AnalysisRun(BaseModel):
    """One pipeline execution, finalized when the last tier settles or the run stops."""

    run_id: str
    deal_id: str
    status: Literal["running", "success", "failed"] = "running"
    mode: Literal["full", "express"] = "full"
    results: dict[str, AgentResult] = Field(default_factory=dict)
    total_cost: float = 0.0
    total_time_ms: int = 0
    early_warnings: list[EarlyWarning] = Field(default_factory=list)
    tiers_completed: list[int] = Field(default_factory=list)
    stopped_reason: str | None = None
    coherence: dict[str, Any] | None = None
    summary: str = ""
    from_cache: bool = False
    cache_age_ms: int | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def has_critical_warnings(self) -> bool:
        return any(w.severity == "critical" for w in self.early_warnings)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results.values() if r.success)


class ReanalysisOutcome(BaseModel):
    """User-visible outcome of a standalone single-agent run."""

    agent_name: str
    status: Literal["success", "failed", "timeout"]
    result: AgentResult | None = None
    error: str | None = None


# === OPTIONS & CALLBACKS ===

ProgressCallback = Callable[[ProgressUpdate], Union[Awaitable[None], None]]
EarlyWarningCallback = Callable[[EarlyWarning], Union[Awaitable[None], None]]


@dataclass
class AnalysisOptions:
    """Per-run knobs for run_full_analysis."""

    mode: Literal["full", "express"] = "full"
    force_refresh: bool = False
    max_cost_usd: float | None = None
    fail_fast_on_critical: bool = False
    on_progress: ProgressCallback | None = None
    on_early_warning: EarlyWarningCallback | None = None
