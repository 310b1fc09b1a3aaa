# src/pipeline/early_warnings.py — v2
"""Early-warning channel — surface dealbreakers while the pipeline runs.

Warnings come from two places: agents that list them explicitly in their
output (``early_warnings``), and detection rules applied to each settled
result's data. High and critical warnings reach the subscriber immediately,
before the tier barrier. Everything is also collected for the final run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from dealscope.config.agents import AgentId
from dealscope.core.models import (
    AgentResult,
    EarlyWarning,
    EarlyWarningCallback,
    Severity,
    WarningCategory,
    WarningRecommendation,
)
from dealscope.pipeline.callbacks import notify

logger = logging.getLogger(__name__)

Operator = Literal["equals", "below", "above", "exists"]


@dataclass(frozen=True)
class DetectionRule:
    """Data-path rule evaluated against one agent's result data."""

    agent: AgentId
    path: str
    operator: Operator
    severity: Severity
    category: WarningCategory
    title: str
    description: str
    value: Any = None
    recommendation: WarningRecommendation = "investigate"
    questions: tuple[str, ...] = ()

    def matches(self, data: dict[str, Any]) -> bool:
        found, actual = resolve_path(data, self.path)
        if not found:
            return False
        if self.operator == "exists":
            return actual is not None and actual != [] and actual != ""
        if self.operator == "equals":
            if isinstance(actual, str) and isinstance(self.value, str):
                return actual.strip().lower() == self.value.lower()
            return actual == self.value
        if isinstance(actual, bool) or not isinstance(actual, (int, float)):
            return False
        if self.operator == "below":
            return actual < self.value
        return actual > self.value


DETECTION_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        agent=AgentId.FINANCIAL_AUDITOR,
        path="score",
        operator="below",
        value=20,
        severity="critical",
        category="financial_critical",
        title="Financial audit score critically low",
        description="The financial audit scored the company below 20/100.",
        recommendation="likely_dealbreaker",
        questions=("Can you walk us through the assumptions behind your projections?",),
    ),
    DetectionRule(
        agent=AgentId.FINANCIAL_AUDITOR,
        path="details.valuation_analysis.verdict",
        operator="equals",
        value="very_aggressive",
        severity="high",
        category="deal_structure",
        title="Very aggressive valuation",
        description="The requested valuation is far above comparable benchmarks.",
        questions=("How did you arrive at the pre-money valuation?",),
    ),
    DetectionRule(
        agent=AgentId.FINANCIAL_AUDITOR,
        path="details.burn_analysis.runway_months",
        operator="below",
        value=6,
        severity="high",
        category="financial_critical",
        title="Runway under six months",
        description="Current cash covers less than six months of burn.",
    ),
    DetectionRule(
        agent=AgentId.LEGAL_REGULATORY,
        path="details.regulatory_exposure.risk_level",
        operator="equals",
        value="critical",
        severity="critical",
        category="legal_existential",
        title="Critical regulatory exposure",
        description="The business model faces regulatory risk that could shut it down.",
        recommendation="likely_dealbreaker",
    ),
    DetectionRule(
        agent=AgentId.LEGAL_REGULATORY,
        path="details.litigation_risk.current_litigation",
        operator="equals",
        value=True,
        severity="high",
        category="legal_existential",
        title="Ongoing litigation",
        description="The company is party to current litigation.",
        questions=("What is the status and potential exposure of the pending litigation?",),
    ),
    DetectionRule(
        agent=AgentId.TEAM_INVESTIGATOR,
        path="details.integrity_concerns",
        operator="exists",
        severity="critical",
        category="founder_integrity",
        title="Founder integrity concerns",
        description="Background checks surfaced integrity concerns about the founders.",
        recommendation="likely_dealbreaker",
    ),
    DetectionRule(
        agent=AgentId.MARKET_INTELLIGENCE,
        path="details.market_timing.assessment",
        operator="equals",
        value="too_late",
        severity="high",
        category="market_dead",
        title="Market window may have closed",
        description="Market timing analysis suggests the window has passed.",
    ),
    DetectionRule(
        agent=AgentId.TECHNICAL_DD,
        path="score",
        operator="below",
        value=20,
        severity="high",
        category="product_broken",
        title="Technical due diligence score critically low",
        description="The technical assessment scored the product below 20/100.",
    ),
    DetectionRule(
        agent=AgentId.CAP_TABLE_AUDITOR,
        path="details.founder_dilution.founders_below_threshold",
        operator="equals",
        value=True,
        severity="high",
        category="deal_structure",
        title="Founders heavily diluted",
        description="Founder ownership is below the level that keeps them incentivized.",
    ),
)


def resolve_path(data: Any, path: str) -> tuple[bool, Any]:
    """Walk a dotted path through nested dicts. Returns (found, value)."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


def detect_warnings(
    result: AgentResult, rules: tuple[DetectionRule, ...] = DETECTION_RULES
) -> list[EarlyWarning]:
    """Apply the detection rules registered for this result's agent."""
    if not result.success or not result.data:
        return []
    warnings = []
    for rule in rules:
        if rule.agent.value != result.agent_name or not rule.matches(result.data):
            continue
        found, actual = resolve_path(result.data, rule.path)
        warnings.append(
            EarlyWarning(
                agent_name=result.agent_name,
                severity=rule.severity,
                category=rule.category,
                title=rule.title,
                description=rule.description,
                evidence=(f"{rule.path} = {actual!r}",) if found else (),
                recommendation=rule.recommendation,
                questions_to_ask=rule.questions,
            )
        )
    return warnings


@dataclass
class WarningSummary:
    total: int = 0
    by_severity: dict[str, int] = field(default_factory=dict)
    has_critical: bool = False
    has_dealbreaker: bool = False


class EarlyWarningChannel:
    """Collects warnings for one run and forwards urgent ones immediately."""

    def __init__(
        self,
        callback: EarlyWarningCallback | None = None,
        rules: tuple[DetectionRule, ...] = DETECTION_RULES,
    ) -> None:
        self._callback = callback
        self._rules = rules
        self._warnings: list[EarlyWarning] = []
        self._seen: set[tuple[str, str]] = set()

    @property
    def warnings(self) -> list[EarlyWarning]:
        return list(self._warnings)

    async def push(self, warning: EarlyWarning) -> None:
        key = (warning.agent_name, warning.title)
        if key in self._seen:
            return
        self._seen.add(key)
        self._warnings.append(warning)
        logger.warning(
            "Early warning [%s] from %s: %s",
            warning.severity, warning.agent_name, warning.title,
        )
        if warning.is_urgent:
            await notify(self._callback, warning)

    def restore(self, warnings: Iterable[EarlyWarning]) -> None:
        """Reload warnings of a resumed run without notifying again."""
        for warning in warnings:
            key = (warning.agent_name, warning.title)
            if key not in self._seen:
                self._seen.add(key)
                self._warnings.append(warning)

    async def inspect(self, result: AgentResult) -> list[EarlyWarning]:
        """Push explicit and rule-detected warnings for one settled result."""
        found = list(result.early_warnings) + detect_warnings(result, self._rules)
        for warning in found:
            await self.push(warning)
        return found

    def summary(self) -> WarningSummary:
        by_severity: dict[str, int] = {}
        for w in self._warnings:
            by_severity[w.severity] = by_severity.get(w.severity, 0) + 1
        return WarningSummary(
            total=len(self._warnings),
            by_severity=by_severity,
            has_critical=by_severity.get("critical", 0) > 0,
            has_dealbreaker=any(
                w.recommendation == "absolute_dealbreaker" for w in self._warnings
            ),
        )
