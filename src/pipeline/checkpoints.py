# src/pipeline/checkpoints.py — v1
"""Tier-barrier checkpoints for interrupted analyses.

After every tier barrier the run in progress is written to the cache
service. A run that finishes, stops or fails removes its checkpoint, so a
checkpoint that is still present belongs to an analysis whose process died
or was cancelled mid-tier. Such a run can be resumed from the tier after
its last barrier; agents that had already settled are not run again.

A per-deal index entry lists the run ids with a live checkpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from dealscope.cache.base_cache_store import deal_tag
from dealscope.core.models import AnalysisRun, utcnow

if TYPE_CHECKING:
    from dealscope.cache.base_cache_store import BaseCacheStore

logger = logging.getLogger(__name__)

CHECKPOINT_NAMESPACE = "checkpoints"


class CheckpointNotFoundError(KeyError):
    """Raised when a run has no resumable checkpoint."""


class RunCheckpoint(BaseModel):
    """A run as it stood at its last tier barrier."""

    run: AnalysisRun
    next_tier: int
    max_cost_usd: float | None = None
    fail_fast_on_critical: bool = False
    checkpointed_at: datetime = Field(default_factory=utcnow)

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def deal_id(self) -> str:
        return self.run.deal_id

    @property
    def completed_agents(self) -> int:
        return len(self.run.results)


def _run_key(run_id: str) -> str:
    return f"run:{run_id}"


def _deal_key(deal_id: str) -> str:
    return f"deal:{deal_id}"


class CheckpointStore:
    """Checkpoint persistence on top of a cache store.

    Args:
        cache: Cache service holding the checkpoints.
        ttl_s: How long an abandoned checkpoint stays resumable.
    """

    def __init__(self, cache: BaseCacheStore, ttl_s: float | None = None) -> None:
        self._cache = cache
        self._ttl_s = ttl_s

    async def save(self, checkpoint: RunCheckpoint) -> None:
        tags = [deal_tag(checkpoint.deal_id)]
        await self._cache.set(
            CHECKPOINT_NAMESPACE,
            _run_key(checkpoint.run_id),
            checkpoint.model_dump(mode="json"),
            ttl_s=self._ttl_s,
            tags=tags,
        )
        index = await self._index(checkpoint.deal_id)
        if checkpoint.run_id not in index:
            await self._cache.set(
                CHECKPOINT_NAMESPACE,
                _deal_key(checkpoint.deal_id),
                [*index, checkpoint.run_id],
                ttl_s=self._ttl_s,
                tags=tags,
            )
        logger.debug(
            "Checkpointed run %s before tier %d (%d agents settled)",
            checkpoint.run_id, checkpoint.next_tier, checkpoint.completed_agents,
        )

    async def load(self, run_id: str) -> RunCheckpoint | None:
        raw = await self._cache.get(CHECKPOINT_NAMESPACE, _run_key(run_id))
        if raw is None:
            return None
        return RunCheckpoint.model_validate(raw)

    async def list_for_deal(self, deal_id: str) -> list[RunCheckpoint]:
        checkpoints = []
        for run_id in await self._index(deal_id):
            checkpoint = await self.load(run_id)
            if checkpoint is not None:
                checkpoints.append(checkpoint)
        return checkpoints

    async def delete(self, run_id: str, deal_id: str) -> bool:
        existed = await self._cache.delete(CHECKPOINT_NAMESPACE, _run_key(run_id))
        index = await self._index(deal_id)
        if run_id in index:
            remaining = [r for r in index if r != run_id]
            if remaining:
                await self._cache.set(
                    CHECKPOINT_NAMESPACE,
                    _deal_key(deal_id),
                    remaining,
                    ttl_s=self._ttl_s,
                    tags=[deal_tag(deal_id)],
                )
            else:
                await self._cache.delete(CHECKPOINT_NAMESPACE, _deal_key(deal_id))
        return existed

    async def _index(self, deal_id: str) -> list[str]:
        return list(await self._cache.get(CHECKPOINT_NAMESPACE, _deal_key(deal_id)) or [])
