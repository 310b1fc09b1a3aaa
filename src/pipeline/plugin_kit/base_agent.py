# src/pipeline/plugin_kit/base_agent.py — v2
"""Standard agent interface for pipeline plugins.

BaseAgent is the only thing the runner and orchestrator know about.
LLMAgent is the shared implementation for agents that make one structured
LLM call per attempt.
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from dealscope.core.models import EarlyWarning
from dealscope.llm.models import Message
from dealscope.pipeline.errors import ValidationError
from dealscope.pipeline.plugin_kit.models import AgentDefinition, AgentOutput
from dealscope.pipeline.plugin_kit.parsing import parse_structured
from dealscope.tracking.cost_calculator import compute_response_cost

if TYPE_CHECKING:
    from dealscope.core.models import ExecutionContext
    from dealscope.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

LLMProvider = Callable[[AgentDefinition], "BaseLLMClient"]


class BaseAgent(ABC):
    """Standard interface for all pipeline agents."""

    @property
    @abstractmethod
    def definition(self) -> AgentDefinition:
        """Identity, tier, dependencies and supervision parameters."""

    @property
    def name(self) -> str:
        return self.definition.name

    @abstractmethod
    async def run(self, context: ExecutionContext) -> AgentOutput:
        """Execute one attempt against a read-only context.

        Raise an AgentError subclass (or let provider errors propagate) on
        failure; the runner classifies and decides about retries.
        """


class LLMAgent(BaseAgent):
    """Agent that asks an LLM for one structured object per attempt."""

    temperature: float = 0.2
    max_tokens: int = 4096

    def __init__(self, definition: AgentDefinition, llm_provider: LLMProvider) -> None:
        self._definition = definition
        self._llm_provider = llm_provider

    @property
    def definition(self) -> AgentDefinition:
        return self._definition

    @property
    @abstractmethod
    def output_schema(self) -> type[BaseModel]:
        """Pydantic model the LLM response must validate against."""

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        """Role instructions for the model."""

    @abstractmethod
    def build_prompt(self, context: ExecutionContext) -> str:
        """User message for this attempt."""

    def to_output(self, parsed: BaseModel, context: ExecutionContext) -> AgentOutput:
        """Map the validated model onto an AgentOutput. Override to post-process."""
        data = parsed.model_dump(mode="json")
        return AgentOutput(
            data=data,
            early_warnings=warnings_from_payload(self.name, data.get("early_warnings")),
        )

    async def run(self, context: ExecutionContext) -> AgentOutput:
        llm = self._llm_provider(self.definition)
        prompt = self.build_prompt(context)
        prompt_hash = hashlib.sha256(prompt.encode()).hexdigest()[:16]

        response = await llm.complete(
            messages=[Message(role="user", content=prompt)],
            system=self.system_prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format=self.output_schema,
        )
        cost = compute_response_cost(response)
        logger.debug(
            "Agent '%s' LLM call: model=%s tokens=%d cost=$%.4f prompt=%s",
            self.name,
            response.model,
            response.total_tokens,
            cost,
            prompt_hash,
        )

        try:
            parsed = parse_structured(
                response.content, self.output_schema, agent=self.name
            )
        except ValidationError as exc:
            exc.cost += cost
            raise
        output = self.to_output(parsed, context)
        return output.model_copy(
            update={
                "cost": output.cost + cost,
                "llm_calls": output.llm_calls + 1,
                "tokens_used": output.tokens_used + response.total_tokens,
            }
        )


def warnings_from_payload(agent_name: str, payload: Any) -> list[EarlyWarning]:
    """Build EarlyWarning objects from an agent's ``early_warnings`` list.

    Entries that do not validate are skipped with a debug log; a bad
    warning never fails the agent.
    """
    if not isinstance(payload, list):
        return []
    warnings: list[EarlyWarning] = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        try:
            warnings.append(EarlyWarning.model_validate({**raw, "agent_name": agent_name}))
        except ValueError as exc:
            logger.debug("Skipping malformed early warning from %s: %s", agent_name, exc)
    return warnings
