# src/pipeline/agents/coherence_checker.py — v1
"""Coherence checker — Tier 0 consistency validation over accepted facts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dealscope.core.coherence import check_coherence
from dealscope.core.models import EarlyWarning
from dealscope.pipeline.plugin_kit.base_agent import BaseAgent
from dealscope.pipeline.plugin_kit.models import AgentDefinition, AgentOutput

if TYPE_CHECKING:
    from dealscope.core.models import ExecutionContext

logger = logging.getLogger(__name__)


class CoherenceCheckerAgent(BaseAgent):
    """Deterministic checker. No LLM call, so cost is always zero."""

    def __init__(self, definition: AgentDefinition) -> None:
        self._definition = definition

    @property
    def definition(self) -> AgentDefinition:
        return self._definition

    async def run(self, context: ExecutionContext) -> AgentOutput:
        report = check_coherence(context.facts)
        logger.info(
            "Coherence: score=%d grade=%s recommendation=%s (%d issues)",
            report.score, report.grade, report.recommendation, len(report.issues),
        )

        warnings = []
        if report.recommendation == "DATA_UNRELIABLE" and report.facts_checked:
            critical = [i for i in report.issues if i.severity == "critical"]
            warnings.append(
                EarlyWarning(
                    agent_name=self.name,
                    severity="high",
                    category="data_reliability",
                    title="Deal data is internally inconsistent",
                    description=(
                        f"{len(critical)} critical coherence issues; "
                        f"reliability grade {report.grade}."
                    ),
                    evidence=tuple(i.description for i in critical),
                    questions_to_ask=tuple(i.recommendation for i in critical),
                )
            )
        return AgentOutput(data=report.model_dump(mode="json"), early_warnings=warnings)
