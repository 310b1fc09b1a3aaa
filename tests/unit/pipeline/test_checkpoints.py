# tests/unit/pipeline/test_checkpoints.py — v1
"""Tests for pipeline/checkpoints.py — tier-barrier checkpoints over the cache."""

from __future__ import annotations

import pytest

from dealscope.cache.base_cache_store import deal_tag
from dealscope.cache.memory_store import MemoryCacheStore
from dealscope.core.models import AgentResult, AnalysisRun, EarlyWarning
from dealscope.pipeline.checkpoints import CheckpointStore, RunCheckpoint


def _checkpoint(
    run_id: str = "r1", deal_id: str = "deal_001", next_tier: int = 2
) -> RunCheckpoint:
    run = AnalysisRun(
        run_id=run_id,
        deal_id=deal_id,
        results={
            "financial-auditor": AgentResult(
                agent_name="financial-auditor", success=True, data={"score": 40}, cost=0.02
            )
        },
        total_cost=0.02,
        tiers_completed=[0, 1],
        early_warnings=[
            EarlyWarning(
                agent_name="financial-auditor",
                severity="high",
                title="Runway under six months",
                description="...",
            )
        ],
    )
    return RunCheckpoint(run=run, next_tier=next_tier, max_cost_usd=2.5)


class TestCheckpointStore:
    @pytest.fixture
    def cache(self) -> MemoryCacheStore:
        return MemoryCacheStore()

    @pytest.fixture
    def store(self, cache) -> CheckpointStore:
        return CheckpointStore(cache, ttl_s=60)

    @pytest.mark.asyncio
    async def test_save_and_load(self, store):
        await store.save(_checkpoint())
        loaded = await store.load("r1")
        assert loaded.next_tier == 2
        assert loaded.max_cost_usd == 2.5
        assert loaded.run.results["financial-auditor"].data == {"score": 40}
        assert loaded.run.early_warnings[0].title == "Runway under six months"
        assert loaded.completed_agents == 1

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.load("nope") is None
        assert await store.list_for_deal("deal_001") == []

    @pytest.mark.asyncio
    async def test_listed_per_deal(self, store):
        await store.save(_checkpoint("r1"))
        await store.save(_checkpoint("r1", next_tier=3))
        await store.save(_checkpoint("r2"))
        await store.save(_checkpoint("r3", deal_id="deal_002"))

        listed = await store.list_for_deal("deal_001")
        assert [c.run_id for c in listed] == ["r1", "r2"]
        assert listed[0].next_tier == 3

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.save(_checkpoint("r1"))
        await store.save(_checkpoint("r2"))
        assert await store.delete("r1", "deal_001") is True
        assert await store.delete("r1", "deal_001") is False
        assert [c.run_id for c in await store.list_for_deal("deal_001")] == ["r2"]

    @pytest.mark.asyncio
    async def test_deal_invalidation_drops_checkpoints(self, store, cache):
        await store.save(_checkpoint())
        await cache.invalidate_by_tag(deal_tag("deal_001"))
        assert await store.load("r1") is None
        assert await store.list_for_deal("deal_001") == []

    @pytest.mark.asyncio
    async def test_expired_checkpoint_skipped(self):
        now = [0.0]
        cache = MemoryCacheStore(clock=lambda: now[0])
        store = CheckpointStore(cache, ttl_s=10)
        await store.save(_checkpoint())
        now[0] = 11.0
        assert await store.list_for_deal("deal_001") == []
