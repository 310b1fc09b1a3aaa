# src/logging/context.py — v2
"""Contextual logging support — attach deal_id, run_id, agent, tier to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per analysis run.
_deal_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "deal_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_agent: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "agent", default=None
)
_tier: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "tier", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    deal_id: str | None = None
    run_id: str | None = None
    agent: str | None = None
    tier: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        deal_id=_deal_id.get(),
        run_id=_run_id.get(),
        agent=_agent.get(),
        tier=_tier.get(),
    )


def set_deal_context(deal_id: str, run_id: str) -> None:
    """Set run-level context (called once per analysis run)."""
    _deal_id.set(deal_id)
    _run_id.set(run_id)


def set_tier_context(tier: int | None) -> None:
    _tier.set(tier)


def set_agent_context(agent: str | None) -> None:
    """Set agent-level context.

    Each agent runs in its own asyncio task, which copies the current
    context, so concurrent agents never see each other's name.
    """
    _agent.set(agent)


def clear_context() -> None:
    """Reset all context variables."""
    _deal_id.set(None)
    _run_id.set(None)
    _agent.set(None)
    _tier.set(None)
