# src/llm/retry.py — v2
"""Error classification and backoff policy for agent retries.

Foreign exceptions (provider SDK errors, JSON decode errors, asyncio
timeouts) are mapped onto the agent error taxonomy here so the runner only
ever reasons about AgentError subclasses.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass

from pydantic import ValidationError as PydanticValidationError

from dealscope.pipeline.errors import (
    AgentError,
    AgentTimeoutError,
    FatalConfigError,
    TransientProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Backoff configuration for agent retries.

    The attempt budget is per agent (``AgentDefinition.max_retries``).
    """

    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    jitter: bool = True


def classify_error(error: BaseException) -> str:
    """Classify an exception into an error category name."""
    if isinstance(error, AgentTimeoutError):
        return "timeout"
    if isinstance(error, ValidationError):
        return "validation"
    if isinstance(error, FatalConfigError):
        return "config"
    if isinstance(error, TransientProviderError):
        return "transient"
    if isinstance(error, AgentError):
        return "agent"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(error, (json.JSONDecodeError, PydanticValidationError)):
        return "validation"

    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "authentication" in name or "permission" in name or "401" in msg or "403" in msg:
        return "config"
    if "api key" in msg or "api_key" in msg or "credential" in msg:
        return "config"
    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "transient"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if "connection" in name or "connection" in msg:
        return "transient"
    if any(c in msg for c in ("500", "502", "503", "504", "529", "overloaded", "server")):
        return "transient"
    if "json" in msg or "parse" in msg or "decode" in msg:
        return "validation"
    return "unknown"


def to_agent_error(
    error: BaseException, agent: str | None = None, timeout_ms: int = 0
) -> AgentError:
    """Wrap any exception into the matching AgentError subclass.

    Unknown failures are treated as permanent: retrying a bug does not help.
    """
    if isinstance(error, AgentError):
        if error.agent is None:
            error.agent = agent
        return error

    category = classify_error(error)
    message = f"{type(error).__name__}: {error}"
    if category == "timeout":
        return AgentTimeoutError(timeout_ms, agent=agent)
    if category == "validation":
        return ValidationError(message, agent=agent)
    if category == "config":
        return FatalConfigError(message, agent=agent)
    if category == "transient":
        return TransientProviderError(message, agent=agent)
    return AgentError(message, agent=agent)


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay before retry number ``attempt`` (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return min(delay, config.max_delay_s)
