# src/pipeline/runner.py — v2
"""Agent runner — one agent invocation under timeout and bounded retry.

``AgentRunner.run(agent, context)`` never raises an Exception: every failure
is folded into ``AgentResult(success=False, error=...)``.

Each attempt races the agent against its ``timeout_ms``. When the timer wins
the attempt is abandoned, not cancelled: the underlying call keeps running in
the background and its eventual outcome is discarded. Retryable failures
(validation, transient provider errors, timeouts) are retried up to
``max_retries`` with increasing backoff; non-retryable ones stop at once.
Cost and time are summed over all attempts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from dealscope.core.models import AgentResult
from dealscope.llm.retry import RetryConfig, classify_error, compute_delay, to_agent_error
from dealscope.logging.context import set_agent_context
from dealscope.pipeline.deadline import Deadline
from dealscope.pipeline.errors import AgentError, AgentTimeoutError

if TYPE_CHECKING:
    from dealscope.core.models import ExecutionContext
    from dealscope.pipeline.plugin_kit.base_agent import BaseAgent
    from dealscope.pipeline.plugin_kit.models import AgentOutput

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class AgentRunner:
    """Run agents with timeout enforcement and retry.

    Args:
        retry_config: Backoff parameters. ``max_retries`` comes from each
            agent's definition, not from here.
        sleep: Injectable sleep for tests.
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._retry_config = retry_config or RetryConfig()
        self._sleep = sleep
        self._orphans: set[asyncio.Future] = set()

    @property
    def orphaned_calls(self) -> int:
        """Abandoned attempts still running in the background."""
        return len(self._orphans)

    async def run(
        self,
        agent: BaseAgent,
        context: ExecutionContext,
        deadline: Deadline | None = None,
    ) -> AgentResult:
        """Execute one agent to a settled AgentResult."""
        definition = agent.definition
        name = definition.name
        deadline = deadline or Deadline.unbounded()
        max_attempts = definition.max_retries + 1

        start = time.monotonic()
        total_cost = 0.0
        attempts = 0
        last_error: AgentError | None = None

        for attempt in range(max_attempts):
            if deadline.expired:
                last_error = AgentTimeoutError(definition.timeout_ms, agent=name)
                break

            attempts += 1
            timeout_s = deadline.clamp(definition.timeout_ms / 1000)
            logger.debug(
                "Running agent '%s' (attempt %d/%d, timeout %.1fs)",
                name, attempts, max_attempts, timeout_s,
            )

            try:
                output = await self._attempt(agent, context, timeout_s)
            except Exception as exc:
                error = to_agent_error(exc, agent=name, timeout_ms=int(timeout_s * 1000))
                total_cost += error.cost
                last_error = error
                logger.warning(
                    "Agent '%s' failed (attempt %d/%d, %s): %s",
                    name, attempts, max_attempts, classify_error(error), error,
                )
                if not error.retryable or attempt + 1 >= max_attempts:
                    break
                delay = compute_delay(self._retry_config, attempt)
                remaining = deadline.remaining_s()
                if remaining is not None and delay >= remaining:
                    logger.warning(
                        "Agent '%s': no time left for retry before deadline", name
                    )
                    break
                await self._sleep(delay)
                continue

            total_cost += output.cost
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.info(
                "Agent '%s' completed: attempts=%d, cost=$%.4f, time=%dms",
                name, attempts, total_cost, elapsed_ms,
            )
            return AgentResult(
                agent_name=name,
                success=True,
                data=output.data,
                cost=total_cost,
                execution_time_ms=elapsed_ms,
                attempts=attempts,
                early_warnings=tuple(output.early_warnings),
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        error = last_error or AgentError("Agent did not run", agent=name)
        logger.error(
            "Agent '%s' gave up after %d attempt(s): %s", name, attempts, error
        )
        return AgentResult(
            agent_name=name,
            success=False,
            error=str(error) or type(error).__name__,
            error_type=classify_error(error),
            cost=total_cost,
            execution_time_ms=elapsed_ms,
            attempts=attempts,
            timed_out=isinstance(error, AgentTimeoutError),
        )

    async def _attempt(
        self, agent: BaseAgent, context: ExecutionContext, timeout_s: float
    ) -> AgentOutput:
        task = asyncio.ensure_future(_invoke(agent, context))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_s)
        except asyncio.CancelledError:
            # The caller itself was cancelled: take the attempt down with it.
            task.cancel()
            raise

        if task in done:
            return task.result()

        self._abandon(task, agent.name)
        raise AgentTimeoutError(int(timeout_s * 1000), agent=agent.name)

    def _abandon(self, task: asyncio.Future, name: str) -> None:
        self._orphans.add(task)

        def _discard(fut: asyncio.Future) -> None:
            self._orphans.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.debug("Discarded late failure from '%s': %s", name, exc)
            else:
                logger.debug("Discarded late result from '%s'", name)

        task.add_done_callback(_discard)


async def _invoke(agent: BaseAgent, context: ExecutionContext) -> AgentOutput:
    # Runs in its own task, so the agent context var stays local to it.
    set_agent_context(agent.name)
    return await agent.run(context)
