# src/facts/repository.py — v1
"""Persistence for per-deal current facts.

BaseFactRepository is the interface the FactStore consumes. The in-memory
implementation serves tests and single-process runs; the SQLite one uses
stdlib sqlite3 with one row per (deal, fact key).
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from dealscope.facts.models import CurrentFact

logger = logging.getLogger(__name__)


class BaseFactRepository(ABC):
    """Storage backend for current facts."""

    @abstractmethod
    async def load(self, deal_id: str) -> list[CurrentFact]:
        """Return the deal's current facts (empty list when none)."""

    @abstractmethod
    async def save(self, deal_id: str, facts: list[CurrentFact]) -> None:
        """Upsert the given current facts. Facts not listed are left untouched."""

    def close(self) -> None:
        """Release resources held by the backend."""


class InMemoryFactRepository(BaseFactRepository):
    def __init__(self) -> None:
        self._facts: dict[str, dict[str, CurrentFact]] = {}

    async def load(self, deal_id: str) -> list[CurrentFact]:
        return list(self._facts.get(deal_id, {}).values())

    async def save(self, deal_id: str, facts: list[CurrentFact]) -> None:
        bucket = self._facts.setdefault(deal_id, {})
        for fact in facts:
            bucket[fact.fact_key] = fact


_SCHEMA = """
CREATE TABLE IF NOT EXISTS current_facts (
    deal_id TEXT NOT NULL,
    fact_key TEXT NOT NULL,
    data TEXT NOT NULL,
    is_disputed INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (deal_id, fact_key)
);
CREATE INDEX IF NOT EXISTS idx_current_facts_deal ON current_facts(deal_id);
"""


class SqliteFactRepository(BaseFactRepository):
    """SQLite-backed repository. Blocking calls run in a worker thread."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), timeout=10.0)

    async def load(self, deal_id: str) -> list[CurrentFact]:
        return await asyncio.to_thread(self._load_sync, deal_id)

    async def save(self, deal_id: str, facts: list[CurrentFact]) -> None:
        await asyncio.to_thread(self._save_sync, deal_id, facts)

    def _load_sync(self, deal_id: str) -> list[CurrentFact]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT data FROM current_facts WHERE deal_id = ? ORDER BY fact_key",
                (deal_id,),
            ).fetchall()
        finally:
            conn.close()
        return [CurrentFact.model_validate_json(row[0]) for row in rows]

    def _save_sync(self, deal_id: str, facts: list[CurrentFact]) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.executemany(
                    """INSERT INTO current_facts
                           (deal_id, fact_key, data, is_disputed, updated_at)
                       VALUES (?, ?, ?, ?, ?)
                       ON CONFLICT(deal_id, fact_key) DO UPDATE SET
                           data = excluded.data,
                           is_disputed = excluded.is_disputed,
                           updated_at = excluded.updated_at""",
                    [
                        (
                            deal_id,
                            f.fact_key,
                            f.model_dump_json(),
                            int(f.is_disputed),
                            f.last_updated_at.isoformat(),
                        )
                        for f in facts
                    ],
                )
        finally:
            conn.close()
        logger.debug("Persisted %d current facts for deal %s", len(facts), deal_id)
