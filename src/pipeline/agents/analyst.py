# src/pipeline/agents/analyst.py — v1
"""Analyst agent — shared implementation for the Tier 1 and Tier 3 analysts.

Every analyst reads the same deal context (metadata, verified facts,
external context, document excerpts) and answers in one common schema. What
differs per agent is its focus brief and the ``details`` it fills in, which
the early-warning rules inspect.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from dealscope.pipeline.agents.prompting import (
    document_excerpts,
    previous_findings,
    standard_context,
)
from dealscope.pipeline.plugin_kit.base_agent import LLMAgent

if TYPE_CHECKING:
    from dealscope.config.agents import AgentId
    from dealscope.core.models import ExecutionContext
    from dealscope.pipeline.plugin_kit.base_agent import LLMProvider
    from dealscope.pipeline.plugin_kit.models import AgentDefinition


class Finding(BaseModel):
    title: str
    detail: str
    severity: Literal["positive", "neutral", "concern", "critical"] = "neutral"
    evidence: str | None = None


class AnalystOutput(BaseModel):
    """Common output schema for analyst agents."""

    score: int = Field(ge=0, le=100)
    summary: str
    findings: list[Finding] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    early_warnings: list[dict[str, Any]] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


_SYSTEM_TEMPLATE = """\
You are a senior venture capital analyst performing due diligence.
Your role: {role}

Focus on:
{focus}

Rules:
- Base every finding on the provided facts and documents; cite the evidence.
- Score the company 0-100 on your dimension (50 = average seed-stage deal).
- List red flags plainly. Report early_warnings only for potential dealbreakers,
  each with severity (critical|high|medium), category, title, description.
- Put structured metrics in "details".
Respond with a single JSON object."""


class AnalystAgent(LLMAgent):
    """LLM analyst with a per-agent focus brief."""

    document_chars = 15_000

    def __init__(
        self,
        definition: AgentDefinition,
        llm_provider: LLMProvider,
        focus: str,
        reads_results: tuple[AgentId, ...] | None = None,
    ) -> None:
        super().__init__(definition, llm_provider)
        self._focus = focus
        self._reads_results = reads_results

    @property
    def output_schema(self) -> type[BaseModel]:
        return AnalystOutput

    @property
    def system_prompt(self) -> str:
        return _SYSTEM_TEMPLATE.format(
            role=self.definition.description or self.name, focus=self._focus
        )

    def build_prompt(self, context: ExecutionContext) -> str:
        parts = [standard_context(context)]
        if context.previous_results:
            parts.append("## Prior Analysis\n" + previous_findings(context, self._reads_results))
        parts.append("## Documents\n" + document_excerpts(context.documents, self.document_chars))
        return "\n\n".join(parts)
