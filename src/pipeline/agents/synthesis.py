# src/pipeline/agents/synthesis.py — v1
"""Tier 2 synthesis agents: deal scorer and investment memo.

The contradiction detector, scenario modeler and devil's advocate are plain
analysts reading Tier 1 output (see catalog.py). The scorer and memo writer
have their own schemas: the scorer produces the final deal score, the memo
writer turns everything into an investment memo around that score.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from dealscope.config.agents import AgentId
from dealscope.pipeline.agents.analyst import AnalystAgent
from dealscope.pipeline.agents.prompting import previous_findings, standard_context

if TYPE_CHECKING:
    from dealscope.core.models import ExecutionContext

Verdict = Literal["strong_pass", "pass", "consider", "weak", "no_go"]


class DealScoreOutput(BaseModel):
    score: int = Field(ge=0, le=100)
    verdict: Verdict
    dimension_scores: dict[str, int] = Field(default_factory=dict)
    rationale: str
    key_strengths: list[str] = Field(default_factory=list)
    key_risks: list[str] = Field(default_factory=list)
    early_warnings: list[dict[str, Any]] = Field(default_factory=list)


class MemoOutput(BaseModel):
    title: str
    executive_summary: str
    memo: str
    recommendation: Verdict
    key_risks: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class DealScorerAgent(AnalystAgent):
    """Aggregate every prior result into the final deal score."""

    temperature = 0.1

    @property
    def output_schema(self) -> type[BaseModel]:
        return DealScoreOutput

    @property
    def system_prompt(self) -> str:
        return (
            "You are the investment committee chair scoring a deal after due diligence.\n"
            "Weigh team, market, product, traction, financials and deal terms; score each "
            "dimension 0-100 in dimension_scores, then give an overall score and verdict "
            "(strong_pass|pass|consider|weak|no_go). Disputed or low-reliability data "
            "must lower confidence, not be ignored.\nRespond with a single JSON object."
        )

    def build_prompt(self, context: ExecutionContext) -> str:
        return (
            f"{standard_context(context)}\n\n"
            f"## Due Diligence Results\n{previous_findings(context)}"
        )


class MemoGeneratorAgent(AnalystAgent):
    """Write the investment memo. Requires the deal score."""

    max_tokens = 8192
    temperature = 0.3

    @property
    def output_schema(self) -> type[BaseModel]:
        return MemoOutput

    @property
    def system_prompt(self) -> str:
        return (
            "You write investment memos for a business angel network.\n"
            "Structure the memo in markdown: company overview, market, team, traction, "
            "financials, risks, score rationale, recommendation. Keep the recommendation "
            "consistent with the deal score you are given.\n"
            "Respond with a single JSON object."
        )

    def build_prompt(self, context: ExecutionContext) -> str:
        score = context.result_data(AgentId.SYNTHESIS_DEAL_SCORER.value)
        score_block = (
            f"Score {score.get('score')}/100, verdict {score.get('verdict')}: "
            f"{score.get('rationale', '')}"
            if score
            else "No deal score available."
        )
        return (
            f"{standard_context(context)}\n\n"
            f"## Deal Score\n{score_block}\n\n"
            f"## Due Diligence Results\n{previous_findings(context)}"
        )
