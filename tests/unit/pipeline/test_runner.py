# tests/unit/pipeline/test_runner.py — v1
"""Tests for pipeline/runner.py — timeout, retry, cost accounting."""

from __future__ import annotations

import asyncio
import time

import pytest

from dealscope.config.agents import AgentId
from dealscope.core.models import EarlyWarning
from dealscope.llm.retry import RetryConfig
from dealscope.pipeline.deadline import Deadline
from dealscope.pipeline.errors import FatalConfigError, TransientProviderError, ValidationError
from dealscope.pipeline.runner import AgentRunner


async def _no_sleep(_: float) -> None:
    return None


@pytest.fixture
def runner() -> AgentRunner:
    return AgentRunner(RetryConfig(base_delay_s=0.01, jitter=False), sleep=_no_sleep)


class TestSuccess:
    @pytest.mark.asyncio
    async def test_success(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.DECK_FORENSICS, data={"score": 71}, cost=0.02)
        result = await runner.run(agent, sample_context)
        assert result.success
        assert result.agent_name == "deck-forensics"
        assert result.data == {"score": 71}
        assert result.cost == pytest.approx(0.02)
        assert result.attempts == 1
        assert result.error is None

    @pytest.mark.asyncio
    async def test_early_warnings_carried(self, runner, fake_agent, sample_context):
        warning = EarlyWarning(
            agent_name="team-investigator", severity="critical",
            title="Undisclosed prior company", description="...",
        )
        agent = fake_agent(AgentId.TEAM_INVESTIGATOR, warnings=[warning])
        result = await runner.run(agent, sample_context)
        assert result.early_warnings == (warning,)


class TestTimeout:
    @pytest.mark.asyncio
    async def test_never_resolving_agent_fails_at_timeout(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.MARKET_INTELLIGENCE, delay_s=3600, timeout_ms=1000, max_retries=0)
        started = time.monotonic()
        result = await runner.run(agent, sample_context)
        elapsed = time.monotonic() - started

        assert not result.success
        assert result.timed_out
        assert result.error_type == "timeout"
        assert "1000ms" in result.error
        assert 0.9 <= elapsed < 1.5
        assert runner.orphaned_calls == 1

    @pytest.mark.asyncio
    async def test_abandoned_call_keeps_running(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.GTM_ANALYST, delay_s=0.2, timeout_ms=50)
        result = await runner.run(agent, sample_context)
        assert result.timed_out
        assert runner.orphaned_calls == 1

        await asyncio.sleep(0.3)
        assert agent.log == ["start:gtm-analyst", "end:gtm-analyst"]
        assert runner.orphaned_calls == 0

    @pytest.mark.asyncio
    async def test_timeout_retried(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.GTM_ANALYST, delay_s=0.2, timeout_ms=50, max_retries=2)
        result = await runner.run(agent, sample_context)
        assert result.attempts == 3
        assert agent.calls == 3

    @pytest.mark.asyncio
    async def test_deadline_clamps_attempt(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.EXIT_STRATEGIST, delay_s=3600, timeout_ms=5_000, max_retries=3)
        started = time.monotonic()
        result = await runner.run(agent, sample_context, deadline=Deadline.after_ms(200))
        elapsed = time.monotonic() - started
        assert result.timed_out
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_expired_deadline_runs_nothing(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.EXIT_STRATEGIST)
        deadline = Deadline.after_ms(0)
        result = await runner.run(agent, sample_context, deadline=deadline)
        assert not result.success
        assert result.attempts == 0
        assert agent.calls == 0

    @pytest.mark.asyncio
    async def test_caller_cancellation_cancels_attempt(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.EXIT_STRATEGIST, delay_s=3600, timeout_ms=10_000)
        task = asyncio.ensure_future(runner.run(agent, sample_context))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert runner.orphaned_calls == 0


class TestRetry:
    @pytest.mark.asyncio
    async def test_validation_error_retried_then_succeeds(self, runner, fake_agent, sample_context):
        agent = fake_agent(
            AgentId.DECK_FORENSICS,
            max_retries=2,
            outcomes=[ValidationError("bad json"), {"score": 64}],
        )
        result = await runner.run(agent, sample_context)
        assert result.success
        assert result.attempts == 2
        assert result.data == {"score": 64}

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self, runner, fake_agent, sample_context):
        agent = fake_agent(
            AgentId.DECK_FORENSICS, max_retries=3, error=FatalConfigError("no api key")
        )
        result = await runner.run(agent, sample_context)
        assert not result.success
        assert result.attempts == 1
        assert result.error_type == "config"

    @pytest.mark.asyncio
    async def test_unknown_exception_is_folded(self, runner, fake_agent, sample_context):
        agent = fake_agent(AgentId.DECK_FORENSICS, max_retries=2, error=KeyError("oops"))
        result = await runner.run(agent, sample_context)
        assert not result.success
        assert result.attempts == 1
        assert "KeyError" in result.error

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, runner, fake_agent, sample_context):
        agent = fake_agent(
            AgentId.DECK_FORENSICS, max_retries=2, error=TransientProviderError("503")
        )
        result = await runner.run(agent, sample_context)
        assert not result.success
        assert result.attempts == 3
        assert result.error_type == "transient"
        assert result.error

    @pytest.mark.asyncio
    async def test_failed_attempt_cost_summed(self, runner, fake_agent, sample_context):
        failure = ValidationError("schema mismatch")
        failure.cost = 0.05
        agent = fake_agent(
            AgentId.DECK_FORENSICS, max_retries=1, cost=0.03, outcomes=[failure, {"score": 1}]
        )
        result = await runner.run(agent, sample_context)
        assert result.cost == pytest.approx(0.08)

    @pytest.mark.asyncio
    async def test_backoff_delays(self, fake_agent, sample_context):
        delays: list[float] = []

        async def record(delay: float) -> None:
            delays.append(delay)

        runner = AgentRunner(RetryConfig(base_delay_s=1.0, backoff_factor=2.0, jitter=False), sleep=record)
        agent = fake_agent(AgentId.DECK_FORENSICS, max_retries=2, error=TransientProviderError("429"))
        await runner.run(agent, sample_context)
        assert delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_no_retry_when_backoff_exceeds_deadline(self, fake_agent, sample_context):
        runner = AgentRunner(RetryConfig(base_delay_s=10.0, jitter=False), sleep=_no_sleep)
        agent = fake_agent(AgentId.DECK_FORENSICS, max_retries=2, error=TransientProviderError("503"))
        result = await runner.run(agent, sample_context, deadline=Deadline.after_ms(2_000))
        assert result.attempts == 1


class TestDeadline:
    def test_unbounded(self):
        d = Deadline.unbounded()
        assert d.remaining_s() is None
        assert not d.expired
        assert d.clamp(5.0) == 5.0

    def test_clamp_with_fake_clock(self):
        now = [100.0]
        d = Deadline.after_ms(2_000, clock=lambda: now[0])
        assert d.clamp(5.0) == pytest.approx(2.0)
        now[0] = 101.5
        assert d.remaining_s() == pytest.approx(0.5)
        now[0] = 103.0
        assert d.remaining_s() == 0.0
        assert d.expired
