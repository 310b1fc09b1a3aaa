# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides sample deals and documents, a current-fact factory, mock LLM
clients and a scriptable fake agent. No external services: all I/O is
mocked or kept in memory / tmp_path.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from dealscope.config.agents import AgentId, Tier
from dealscope.core.models import Deal, Document, EarlyWarning, ExecutionContext
from dealscope.facts.models import CurrentFact, FactCategory, FactSource
from dealscope.facts.taxonomy import FACT_KEYS, format_display_value
from dealscope.llm.models import LLMResponse
from dealscope.pipeline.plugin_kit.base_agent import BaseAgent
from dealscope.pipeline.plugin_kit.models import AgentDefinition, AgentOutput


# === FIXTURES: Sample data ===


@pytest.fixture
def sample_deal() -> Deal:
    return Deal(
        id="deal_001",
        name="Acme Seed",
        company_name="Acme Analytics",
        sector="SaaS",
        stage="seed",
        geography="France",
        arr=600_000,
        amount_requested=2_000_000,
        valuation_pre=8_000_000,
    )


@pytest.fixture
def sample_documents() -> list[Document]:
    return [
        Document(
            id="doc_deck",
            name="Acme deck.pdf",
            type="pitch_deck",
            extracted_text="Acme Analytics. ARR €600K, MRR €50K, 42 customers. Team of 12.",
        ),
        Document(
            id="doc_fm",
            name="Acme model.xlsx",
            type="financial_model",
            extracted_text="Burn rate 80K/month, cash 1.2M, runway 15 months.",
        ),
    ]


@pytest.fixture
def sample_context(sample_deal: Deal, sample_documents: list[Document]) -> ExecutionContext:
    return ExecutionContext(
        run_id="run_test", deal=sample_deal, documents=tuple(sample_documents)
    )


@pytest.fixture
def make_current_fact() -> Callable[..., CurrentFact]:
    """Factory for CurrentFact records of a given key and value."""

    def _make(
        fact_key: str,
        value: Any,
        deal_id: str = "deal_001",
        source: FactSource = FactSource.PITCH_DECK,
        confidence: float = 90.0,
        is_disputed: bool = False,
    ) -> CurrentFact:
        definition = FACT_KEYS.get(fact_key)
        now = datetime(2025, 1, 15, tzinfo=timezone.utc)
        return CurrentFact(
            deal_id=deal_id,
            fact_key=fact_key,
            category=definition.category if definition else FactCategory.OTHER,
            current_value=value,
            current_display_value=format_display_value(definition, value),
            current_source=source,
            current_confidence=confidence,
            current_extracted_text=f"{fact_key} = {value}",
            is_disputed=is_disputed,
            first_seen_at=now,
            last_updated_at=now,
        )

    return _make


# === FIXTURES: Mock LLM ===


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    """Standard mock LLM response."""
    return LLMResponse(
        content='{"result": "test"}',
        input_tokens=100,
        output_tokens=50,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=500,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock LLM client that returns a standard response."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.provider_name = "anthropic"
    return client


# === FIXTURES: Fake agents ===


class FakeAgent(BaseAgent):
    """Scriptable agent: returns ``data`` after ``delay_s`` or raises ``error``.

    ``outcomes`` overrides both per attempt: each entry is either an
    exception to raise or a dict to return.
    """

    def __init__(
        self,
        agent_id: AgentId,
        tier: Tier = Tier.ANALYSIS,
        *,
        data: dict[str, Any] | None = None,
        error: BaseException | None = None,
        delay_s: float = 0.0,
        cost: float = 0.01,
        timeout_ms: int = 5_000,
        max_retries: int = 0,
        dependencies: tuple[AgentId, ...] = (),
        outcomes: list[Any] | None = None,
        warnings: list[EarlyWarning] | None = None,
        log: list[str] | None = None,
    ) -> None:
        self._definition = AgentDefinition(
            agent_id=agent_id,
            tier=tier,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            dependencies=dependencies,
        )
        self._data = data if data is not None else {"score": 50}
        self._error = error
        self._delay_s = delay_s
        self._cost = cost
        self._outcomes = list(outcomes) if outcomes is not None else None
        self._warnings = warnings or []
        self.log = log if log is not None else []
        self.calls = 0
        self.contexts: list[ExecutionContext] = []

    @property
    def definition(self) -> AgentDefinition:
        return self._definition

    async def run(self, context: ExecutionContext) -> AgentOutput:
        self.calls += 1
        self.contexts.append(context)
        self.log.append(f"start:{self.name}")
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        outcome: Any = self._error or self._data
        if self._outcomes is not None:
            outcome = self._outcomes.pop(0) if self._outcomes else self._data
        self.log.append(f"end:{self.name}")
        if isinstance(outcome, BaseException):
            raise outcome
        return AgentOutput(data=outcome, cost=self._cost, early_warnings=self._warnings)


@pytest.fixture
def fake_agent() -> type[FakeAgent]:
    """The FakeAgent class, for tests that build their own agents."""
    return FakeAgent
