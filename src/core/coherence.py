# src/core/coherence.py — v1
"""Deterministic coherence checks over a deal's current facts.

Cross-checks arithmetic and logical consistency between accepted facts
(ARR vs MRR x 12, runway vs cash / burn, market sizing order, ...) and turns
the findings into a 0-100 score, an A-F reliability grade and a
recommendation. Pure: no I/O and no LLM.

Scoring: start at 100, subtract 25 per critical, 10 per warning and 3 per
info issue, floor at 0. Arithmetic gaps within 2% are ignored; above that
they are info, from 10% a warning and above 20% critical.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, Field

from dealscope.facts.models import CurrentFact
from dealscope.facts.taxonomy import parse_fact_date

IssueType = Literal["inconsistency", "missing", "implausible", "contradiction"]
IssueSeverity = Literal["critical", "warning", "info"]
IssueCategory = Literal["financial", "team", "market", "metrics", "timeline"]
Grade = Literal["A", "B", "C", "D", "F"]
Recommendation = Literal[
    "PROCEED", "PROCEED_WITH_CAUTION", "REQUEST_CLARIFICATION", "DATA_UNRELIABLE"
]

TOLERANCE = 0.02
WARNING_GAP = 0.10
CRITICAL_GAP = 0.20

PENALTIES: dict[str, int] = {"critical": 25, "warning": 10, "info": 3}

# Each entry is satisfied when any of its keys is present.
ESSENTIAL_FACTS: tuple[tuple[str, ...], ...] = (
    ("financial.arr", "financial.mrr"),
    ("financial.burn_rate",),
    ("financial.runway_months",),
    ("financial.cash_position",),
    ("team.size",),
    ("market.tam",),
    ("traction.customers_count",),
    ("financial.gross_margin",),
    ("financial.amount_raising",),
    ("financial.valuation_pre",),
)


class CoherenceIssue(BaseModel):
    id: str
    type: IssueType
    severity: IssueSeverity
    category: IssueCategory
    description: str
    recommendation: str
    fact_keys: tuple[str, ...] = ()


class CoherenceReport(BaseModel):
    score: int
    grade: Grade
    recommendation: Recommendation
    issues: list[CoherenceIssue] = Field(default_factory=list)
    data_completeness_percent: float = 0.0
    facts_checked: int = 0

    @property
    def critical_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == "critical")

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == "warning")


def gap_severity(gap: float) -> IssueSeverity | None:
    """Severity for a relative arithmetic gap, or None within tolerance."""
    if gap <= TOLERANCE:
        return None
    if gap > CRITICAL_GAP:
        return "critical"
    if gap >= WARNING_GAP:
        return "warning"
    return "info"


def grade_for(score: int, critical: int) -> Grade:
    if critical >= 3:
        return "F"
    if critical >= 2:
        return "D"
    if score >= 85 and critical == 0:
        return "A"
    if score >= 70 and critical <= 1:
        return "B"
    if score >= 50:
        return "C"
    if score >= 30:
        return "D"
    return "F"


def recommendation_for(score: int, critical: int) -> Recommendation:
    if critical >= 3:
        return "DATA_UNRELIABLE"
    if critical >= 1:
        return "REQUEST_CLARIFICATION"
    if score >= 80:
        return "PROCEED"
    return "PROCEED_WITH_CAUTION"


class _Checker:
    def __init__(self, facts: Iterable[CurrentFact]) -> None:
        self.facts = {f.fact_key: f for f in facts}
        self.issues: list[CoherenceIssue] = []

    def num(self, key: str) -> float | None:
        fact = self.facts.get(key)
        if fact is None:
            return None
        value = fact.current_value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    def add(
        self,
        type_: IssueType,
        severity: IssueSeverity,
        category: IssueCategory,
        description: str,
        recommendation: str,
        *keys: str,
    ) -> None:
        self.issues.append(
            CoherenceIssue(
                id=f"COH-{len(self.issues) + 1:03d}",
                type=type_,
                severity=severity,
                category=category,
                description=description,
                recommendation=recommendation,
                fact_keys=keys,
            )
        )

    def arithmetic(
        self,
        actual: float,
        expected: float,
        category: IssueCategory,
        description: str,
        recommendation: str,
        *keys: str,
    ) -> None:
        if expected == 0:
            return
        gap = abs(actual - expected) / abs(expected)
        severity = gap_severity(gap)
        if severity is not None:
            self.add(
                "inconsistency",
                severity,
                category,
                f"{description} (gap {gap * 100:.1f}%)",
                recommendation,
                *keys,
            )

    # -- checks --

    def financial(self) -> None:
        arr, mrr = self.num("financial.arr"), self.num("financial.mrr")
        if arr is not None and mrr is not None:
            self.arithmetic(
                arr, mrr * 12, "financial",
                f"ARR {arr:,.0f} does not match MRR x 12 = {mrr * 12:,.0f}",
                "Ask the founders which figure is current and how ARR is computed.",
                "financial.arr", "financial.mrr",
            )

        cash, burn = self.num("financial.cash_position"), self.num("financial.burn_rate")
        runway = self.num("financial.runway_months")
        if cash is not None and burn and runway is not None:
            expected = cash / burn
            self.arithmetic(
                runway, expected, "financial",
                f"Runway of {runway:g} months does not match cash / burn = {expected:.1f}",
                "Request the latest bank statement and monthly burn breakdown.",
                "financial.runway_months", "financial.cash_position", "financial.burn_rate",
            )

        margin = self.num("financial.gross_margin")
        if margin is not None and margin > 100:
            self.add(
                "implausible", "critical", "financial",
                f"Gross margin of {margin:g}% exceeds 100%",
                "Verify how gross margin is calculated.",
                "financial.gross_margin",
            )

        pre = self.num("financial.valuation_pre")
        post = self.num("financial.valuation_post")
        raising = self.num("financial.amount_raising")
        if pre is not None and post is not None and raising is not None:
            self.arithmetic(
                post, pre + raising, "financial",
                f"Post-money {post:,.0f} does not equal pre-money + round = {pre + raising:,.0f}",
                "Confirm the round terms in the term sheet.",
                "financial.valuation_post", "financial.valuation_pre", "financial.amount_raising",
            )

    def unit_economics(self) -> None:
        ltv, cac = self.num("traction.ltv"), self.num("traction.cac")
        ratio = self.num("traction.ltv_cac_ratio")
        if ltv is not None and cac:
            if ratio is not None:
                self.arithmetic(
                    ratio, ltv / cac, "metrics",
                    f"LTV/CAC ratio {ratio:g} does not match LTV / CAC = {ltv / cac:.2f}",
                    "Ask for the LTV and CAC calculation methodology.",
                    "traction.ltv_cac_ratio", "traction.ltv", "traction.cac",
                )
            if ltv < 3 * cac:
                self.add(
                    "implausible", "info", "metrics",
                    f"LTV ({ltv:,.0f}) is below 3x CAC ({cac:,.0f})",
                    "Discuss the path to healthier unit economics.",
                    "traction.ltv", "traction.cac",
                )
            ratio = ratio if ratio is not None else ltv / cac

        if ratio is not None and ratio > 10:
            self.add(
                "implausible", "warning", "metrics",
                f"LTV/CAC of {ratio:.1f} is unusually high",
                "Check whether CAC excludes sales salaries or LTV assumes no churn.",
                "traction.ltv_cac_ratio",
            )

        nrr = self.num("traction.nrr")
        if nrr is not None and nrr > 200:
            self.add(
                "implausible", "warning", "metrics",
                f"Net revenue retention of {nrr:g}% is implausibly high",
                "Request the cohort data behind the NRR figure.",
                "traction.nrr",
            )

        churn = self.num("traction.churn_monthly")
        if churn is not None and not 0 <= churn <= 100:
            self.add(
                "implausible", "critical", "metrics",
                f"Monthly churn of {churn:g}% is outside 0-100%",
                "Ask for the churn definition and raw numbers.",
                "traction.churn_monthly",
            )

    def team(self) -> None:
        size, technical = self.num("team.size"), self.num("team.technical_count")
        if size is not None and technical is not None and technical > size:
            self.add(
                "inconsistency", "critical", "team",
                f"Technical headcount ({technical:g}) exceeds total team size ({size:g})",
                "Ask for a current org chart.",
                "team.technical_count", "team.size",
            )

    def market(self) -> None:
        tam, sam, som = (self.num(k) for k in ("market.tam", "market.sam", "market.som"))
        if tam is not None and sam is not None and sam > tam:
            self.add(
                "inconsistency", "warning", "market",
                "SAM is larger than TAM",
                "Ask for the market sizing methodology.",
                "market.sam", "market.tam",
            )
        if sam is not None and som is not None and som > sam:
            self.add(
                "inconsistency", "warning", "market",
                "SOM is larger than SAM",
                "Ask for the market sizing methodology.",
                "market.som", "market.sam",
            )

    def timeline(self) -> None:
        founded = self.facts.get("other.founding_date")
        launched = self.facts.get("product.launch_date")
        if founded is None or launched is None:
            return
        founded_on = parse_fact_date(founded.current_value)
        launched_on = parse_fact_date(launched.current_value)
        if founded_on and launched_on and launched_on < founded_on:
            self.add(
                "inconsistency", "warning", "timeline",
                f"Product launch ({launched_on}) predates company founding ({founded_on})",
                "Clarify whether the product existed before incorporation.",
                "product.launch_date", "other.founding_date",
            )

    def disputes(self) -> None:
        for fact in self.facts.values():
            if fact.is_disputed:
                details = fact.dispute_details
                conflicting = f" (conflicting value: {details.conflicting_value!r})" if details else ""
                self.add(
                    "contradiction", "warning", _category_for(fact.fact_key),
                    f"{fact.fact_key} is disputed between sources{conflicting}",
                    "Resolve the conflicting figures with the founders.",
                    fact.fact_key,
                )

    def completeness(self) -> int:
        missing = 0
        for group in ESSENTIAL_FACTS:
            if any(key in self.facts for key in group):
                continue
            missing += 1
            self.add(
                "missing", "info", _category_for(group[0]),
                f"Essential fact missing: {' or '.join(group)}",
                "Request this data point from the founders.",
                *group,
            )
        return missing


def _category_for(fact_key: str) -> IssueCategory:
    prefix = fact_key.split(".", 1)[0]
    return {
        "financial": "financial",
        "team": "team",
        "market": "market",
        "traction": "metrics",
    }.get(prefix, "metrics")  # type: ignore[return-value]


def check_coherence(facts: Iterable[CurrentFact]) -> CoherenceReport:
    """Run every check and grade the result."""
    checker = _Checker(facts)
    if not checker.facts:
        return CoherenceReport(
            score=0,
            grade="F",
            recommendation="DATA_UNRELIABLE",
            data_completeness_percent=0.0,
        )

    checker.financial()
    checker.unit_economics()
    checker.team()
    checker.market()
    checker.timeline()
    checker.disputes()
    missing = checker.completeness()

    counts: dict[str, int] = {"critical": 0, "warning": 0, "info": 0}
    for issue in checker.issues:
        counts[issue.severity] += 1
    score = max(0, 100 - sum(PENALTIES[s] * n for s, n in counts.items()))

    return CoherenceReport(
        score=score,
        grade=grade_for(score, counts["critical"]),
        recommendation=recommendation_for(score, counts["critical"]),
        issues=checker.issues,
        data_completeness_percent=round((1 - missing / len(ESSENTIAL_FACTS)) * 100, 1),
        facts_checked=len(checker.facts),
    )
