# src/pipeline/deadline.py — v1
"""Absolute deadline shared between a caller-side guard and the agent runner.

One Deadline object is created by the outer layer and threaded into the
runner, which clamps every attempt timeout and retry delay to what is left.
The inner per-attempt timeout must stay strictly shorter than the outer
deadline; ``check_nested`` enforces that.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from dealscope.config.settings import ConfigurationError


@dataclass(frozen=True)
class Deadline:
    expires_at: float | None = None
    _clock: object = field(default=time.monotonic, repr=False, compare=False)

    @classmethod
    def after_ms(cls, timeout_ms: int, clock=time.monotonic) -> Deadline:
        return cls(expires_at=clock() + timeout_ms / 1000, _clock=clock)

    @classmethod
    def unbounded(cls) -> Deadline:
        return cls(expires_at=None)

    def remaining_s(self) -> float | None:
        """Seconds left (never negative), or None for an unbounded deadline."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())  # type: ignore[operator]

    @property
    def expired(self) -> bool:
        remaining = self.remaining_s()
        return remaining is not None and remaining <= 0.0

    def clamp(self, timeout_s: float) -> float:
        remaining = self.remaining_s()
        return timeout_s if remaining is None else min(timeout_s, remaining)


def check_nested(inner_timeout_ms: int, outer_timeout_ms: int) -> None:
    """Raise ConfigurationError unless inner < outer."""
    if inner_timeout_ms >= outer_timeout_ms:
        raise ConfigurationError(
            f"Inner agent deadline ({inner_timeout_ms}ms) must be strictly shorter "
            f"than the outer guard ({outer_timeout_ms}ms)"
        )
