# src/pipeline/errors.py — v1
"""Agent error taxonomy.

Every failure an agent can hit maps onto one of these classes. The
``retryable`` flag drives the AgentRunner's retry decision; anything that is
not an AgentError is classified first (see llm/retry.py).
"""

from __future__ import annotations


class AgentError(Exception):
    """Base class for agent failures."""

    retryable: bool = False

    def __init__(self, message: str, *, agent: str | None = None) -> None:
        self.agent = agent
        # Spend already incurred by the failed attempt (e.g. an unparseable completion)
        self.cost = 0.0
        super().__init__(message)


class ValidationError(AgentError):
    """Agent output did not match the expected structure or type."""

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        agent: str | None = None,
        raw_content: str | None = None,
        permanent: bool = False,
    ) -> None:
        super().__init__(message, agent=agent)
        self.raw_content = raw_content
        # Permanent failures (e.g. an input that can never validate) skip retries
        self.retryable = not permanent


class AgentTimeoutError(AgentError):
    """Agent deadline exceeded. Retried only while retry budget remains."""

    retryable = True

    def __init__(self, timeout_ms: int, *, agent: str | None = None) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Agent timed out after {timeout_ms}ms", agent=agent)


class TransientProviderError(AgentError):
    """Rate limit, network or provider-side 5xx failure."""

    retryable = True


class FatalConfigError(AgentError):
    """Missing credential or configuration. Never retried."""

    retryable = False


class DependencyError(AgentError):
    """A hard upstream dependency did not produce a usable result."""

    retryable = False
