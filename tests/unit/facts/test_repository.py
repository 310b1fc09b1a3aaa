# tests/unit/facts/test_repository.py — v1
"""Tests for facts/repository.py and facts/formatting.py."""

from __future__ import annotations

import json

import pytest

from dealscope.facts.formatting import facts_as_json, format_fact_store
from dealscope.facts.models import DisputeDetails, ExtractedFact, FactSource
from dealscope.facts.repository import InMemoryFactRepository, SqliteFactRepository
from dealscope.facts.store import FactStore


class TestInMemoryFactRepository:
    @pytest.mark.asyncio
    async def test_save_replaces_by_key(self, make_current_fact):
        repo = InMemoryFactRepository()
        await repo.save("d1", [make_current_fact("financial.arr", 1, deal_id="d1")])
        await repo.save("d1", [make_current_fact("financial.arr", 2, deal_id="d1")])
        (fact,) = await repo.load("d1")
        assert fact.current_value == 2


class TestSqliteFactRepository:
    @pytest.mark.asyncio
    async def test_roundtrip_preserves_history(self, tmp_path):
        path = tmp_path / "facts.db"
        store = FactStore(SqliteFactRepository(path))
        for value in (500_000, 300_000):
            await store.ingest_facts(
                "deal_001",
                [
                    ExtractedFact(
                        fact_key="financial.arr", value=value,
                        source_confidence=90, extracted_text=f"ARR {value}",
                    )
                ],
            )

        reopened = SqliteFactRepository(path)
        (fact,) = await reopened.load("deal_001")
        assert fact.current_value == 300_000
        assert fact.is_disputed
        assert fact.event_history[0].value == 500_000
        assert fact.event_history[0].contradiction.significance == "MAJOR"

    @pytest.mark.asyncio
    async def test_deals_isolated(self, tmp_path, make_current_fact):
        repo = SqliteFactRepository(tmp_path / "sub" / "facts.db")
        await repo.save("a", [make_current_fact("team.size", 3, deal_id="a")])
        assert await repo.load("b") == []
        assert len(await repo.load("a")) == 1


class TestFormatting:
    def test_empty(self):
        assert format_fact_store([]) == "No verified facts available."

    def test_grouped_markdown(self, make_current_fact):
        facts = [
            make_current_fact("team.size", 12, confidence=75),
            make_current_fact("financial.arr", 600_000, source=FactSource.DATA_ROOM),
        ]
        text = format_fact_store(facts)
        assert text.index("### Financial Metrics") < text.index("### Team")
        assert "- **Annual Recurring Revenue**: €600K [Data Room]" in text
        assert "(confidence: 75%)" in text

    def test_disputed_section(self, make_current_fact):
        fact = make_current_fact("financial.arr", 300_000, is_disputed=True).model_copy(
            update={
                "dispute_details": DisputeDetails(
                    conflicting_value=500_000,
                    conflicting_source=FactSource.PITCH_DECK,
                    significance="MAJOR",
                    delta_percent=40.0,
                )
            }
        )
        text = format_fact_store([fact])
        assert "[DISPUTED]" in text
        assert "### Disputed Facts (Require Verification)" in text

    def test_json(self, make_current_fact):
        data = json.loads(facts_as_json([make_current_fact("team.ceo.name", "Ada")]))
        assert data["team"]["ceo.name"]["value"] == "Ada"
        assert data["team"]["ceo.name"]["source"] == "PITCH_DECK"
