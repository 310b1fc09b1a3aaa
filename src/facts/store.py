# src/facts/store.py — v2
"""Fact Store — confidence gate, batch dedup, contradiction detection.

Ingestion is split in two:
  - ``ingest(extracted, existing)`` is pure: it decides which candidates are
    accepted and which contradictions they raise against current values.
  - ``apply_ingestion`` folds accepted facts into CurrentFact records, each
    prior state appended to the record's history.

``FactStore.ingest_facts(deal_id, extracted)`` ties both to a repository and
serializes concurrent ingestion for the same deal.
"""

from __future__ import annotations

import asyncio
import logging
import math
import weakref
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from dealscope.facts.matching import detect_contradiction
from dealscope.facts.models import (
    SOURCE_PRIORITY,
    Contradiction,
    CurrentFact,
    DisputeDetails,
    ExtractedFact,
    Fact,
    FactEvent,
    FactEventType,
    FactSource,
    IngestionResult,
    RejectedFact,
    utcnow,
)
from dealscope.facts.repository import BaseFactRepository, InMemoryFactRepository
from dealscope.facts.taxonomy import (
    format_display_value,
    get_fact_key_definition,
    require_fact_key,
    validate_fact_value,
)

logger = logging.getLogger(__name__)

# Hard floor: below this a candidate is dropped, never stored.
CONFIDENCE_FLOOR = 70


def ingest(
    extracted: Sequence[ExtractedFact],
    existing: Iterable[CurrentFact],
) -> IngestionResult:
    """Reconcile a batch of candidates against a deal's current facts.

    Args:
        extracted: Candidate facts from one extraction pass.
        existing: The deal's current fact snapshot.

    Returns:
        IngestionResult with accepted facts (at most one per key),
        contradictions against current values, and rejected candidates.
    """
    result = IngestionResult()
    best: dict[str, Fact] = {}

    for candidate in extracted:
        fact = _accept(candidate, result.rejected)
        if fact is None:
            continue
        kept = best.get(fact.fact_key)
        if kept is None:
            best[fact.fact_key] = fact
            continue
        # Same key twice in one batch: highest confidence wins, no contradiction.
        loser = fact
        if fact.source_confidence > kept.source_confidence:
            best[fact.fact_key], loser = fact, kept
        result.rejected.append(
            RejectedFact(
                fact_key=loser.fact_key,
                value=loser.value,
                reason="duplicate",
                detail=f"lower confidence duplicate ({loser.source_confidence:g})",
            )
        )

    current_by_key = {c.fact_key: c for c in existing}
    for fact in best.values():
        current = current_by_key.get(fact.fact_key)
        if _held_by_override(fact, current):
            result.rejected.append(
                RejectedFact(
                    fact_key=fact.fact_key,
                    value=fact.value,
                    reason="overridden",
                    detail=f"analyst override stands over {fact.source.value}",
                )
            )
            continue
        result.accepted.append(fact)
        if current is None:
            continue
        contradiction = detect_contradiction(fact, current)
        if contradiction is not None:
            result.contradictions.append(contradiction)

    if result.rejected:
        logger.info(
            "Fact ingestion: %d accepted, %d rejected, %d contradictions",
            len(result.accepted),
            len(result.rejected),
            len(result.contradictions),
        )
    return result


def _held_by_override(fact: Fact, current: CurrentFact | None) -> bool:
    # Only another analyst override may replace an analyst override.
    return (
        current is not None
        and current.current_source == FactSource.BA_OVERRIDE
        and fact.source != FactSource.BA_OVERRIDE
    )


def _accept(candidate: ExtractedFact, rejected: list[RejectedFact]) -> Fact | None:
    """Apply the acceptance rules to one candidate."""

    def reject(reason: str, detail: str) -> None:
        rejected.append(
            RejectedFact(
                fact_key=candidate.fact_key,
                value=candidate.value,
                reason=reason,  # type: ignore[arg-type]
                detail=detail,
            )
        )
        logger.info(
            "Dropped fact %s (%s): %s", candidate.fact_key, reason, detail
        )

    definition = get_fact_key_definition(candidate.fact_key)
    if definition is None:
        reject("unknown_key", "not in taxonomy")
        return None

    confidence = candidate.source_confidence
    if confidence is None:
        reject("missing_confidence", "no confidence score")
        return None
    if not math.isfinite(confidence) or not 0 <= confidence <= 100:
        reject("invalid_confidence", f"confidence {confidence!r} outside 0-100")
        return None
    if confidence < CONFIDENCE_FLOOR:
        reject("low_confidence", f"confidence {confidence:g} < {CONFIDENCE_FLOOR}")
        return None

    evidence = (candidate.extracted_text or "").strip()
    if not evidence:
        reject("missing_evidence", "no verbatim quote")
        return None

    mismatch = validate_fact_value(definition, candidate.value)
    if mismatch is not None:
        reject("type_mismatch", mismatch)
        return None

    return Fact(
        fact_key=candidate.fact_key,
        category=definition.category,
        value=candidate.value,
        display_value=format_display_value(definition, candidate.value),
        unit=candidate.unit or definition.unit,
        source=candidate.source,
        source_priority=SOURCE_PRIORITY[candidate.source],
        source_document_id=candidate.source_document_id,
        source_confidence=float(confidence),
        extracted_text=evidence,
    )


def apply_ingestion(
    deal_id: str,
    result: IngestionResult,
    existing: Iterable[CurrentFact],
    now: datetime | None = None,
) -> list[CurrentFact]:
    """Fold accepted facts into current-fact records.

    Returns only the records that changed, one per accepted fact. Inputs are
    never mutated.
    """
    now = now or utcnow()
    current_by_key = {c.fact_key: c for c in existing}
    contradiction_by_key = {c.fact_key: c for c in result.contradictions}
    updated: list[CurrentFact] = []

    for fact in result.accepted:
        current = current_by_key.get(fact.fact_key)
        contradiction = contradiction_by_key.get(fact.fact_key)
        if current is None:
            updated.append(_create_current(deal_id, fact, now))
        else:
            updated.append(_supersede(current, fact, contradiction, now))

    return updated


def _create_current(deal_id: str, fact: Fact, now: datetime) -> CurrentFact:
    return CurrentFact(
        deal_id=deal_id,
        fact_key=fact.fact_key,
        category=fact.category,
        current_value=fact.value,
        current_display_value=fact.display_value,
        current_source=fact.source,
        current_confidence=fact.source_confidence,
        current_source_document_id=fact.source_document_id,
        current_extracted_text=fact.extracted_text,
        first_seen_at=now,
        last_updated_at=now,
    )


def _prior_state(
    current: CurrentFact,
    event_type: FactEventType,
    now: datetime,
    contradiction: Contradiction | None = None,
    reason: str | None = None,
) -> FactEvent:
    return FactEvent(
        event_type=event_type,
        value=current.current_value,
        display_value=current.current_display_value,
        source=current.current_source,
        confidence=current.current_confidence,
        source_document_id=current.current_source_document_id,
        extracted_text=current.current_extracted_text,
        recorded_at=current.last_updated_at,
        replaced_at=now,
        contradiction=contradiction,
        reason=reason,
    )


def _supersede(
    current: CurrentFact,
    fact: Fact,
    contradiction: Contradiction | None,
    now: datetime,
) -> CurrentFact:
    event_type = (
        FactEventType.DISPUTED if contradiction is not None else FactEventType.SUPERSEDED
    )
    dispute = (
        DisputeDetails(
            conflicting_value=contradiction.existing_value,
            conflicting_source=contradiction.existing_source,
            significance=contradiction.significance,
            delta_percent=contradiction.delta_percent,
        )
        if contradiction is not None
        else None
    )
    return current.model_copy(
        update={
            "current_value": fact.value,
            "current_display_value": fact.display_value,
            "current_source": fact.source,
            "current_confidence": fact.source_confidence,
            "current_source_document_id": fact.source_document_id,
            "current_extracted_text": fact.extracted_text,
            "is_disputed": contradiction is not None,
            "dispute_details": dispute,
            "event_history": (
                *current.event_history,
                _prior_state(current, event_type, now, contradiction),
            ),
            "last_updated_at": now,
        }
    )


class FactStore:
    """Deal-level ingestion API over a fact repository."""

    def __init__(self, repository: BaseFactRepository | None = None) -> None:
        self._repository = repository or InMemoryFactRepository()
        # Entries vanish once no ingestion for the deal holds the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def repository(self) -> BaseFactRepository:
        return self._repository

    def _lock_for(self, deal_id: str) -> asyncio.Lock:
        lock = self._locks.get(deal_id)
        if lock is None:
            lock = self._locks[deal_id] = asyncio.Lock()
        return lock

    async def get_current_facts(self, deal_id: str) -> list[CurrentFact]:
        return await self._repository.load(deal_id)

    async def ingest_facts(
        self, deal_id: str, extracted: Sequence[ExtractedFact]
    ) -> IngestionResult:
        """Reconcile candidates against the deal's snapshot and persist."""
        async with self._lock_for(deal_id):
            existing = await self._repository.load(deal_id)
            result = ingest(extracted, existing)
            updated = apply_ingestion(deal_id, result, existing)
            if updated:
                await self._repository.save(deal_id, updated)

        for contradiction in result.contradictions:
            level = logging.WARNING if contradiction.significance == "MAJOR" else logging.INFO
            logger.log(
                level,
                "Deal %s: %s contradiction on %s (delta=%s%%)",
                deal_id,
                contradiction.significance,
                contradiction.fact_key,
                contradiction.delta_percent,
            )
        return result

    async def override_fact(
        self,
        deal_id: str,
        fact_key: str,
        value: Any,
        reason: str,
    ) -> CurrentFact:
        """Analyst correction. Never raises a contradiction; clears disputes.

        Raises:
            UnknownFactKeyError: If the key is not in the taxonomy.
            ValueError: If the value does not match the key's type.
        """
        definition = require_fact_key(fact_key)
        mismatch = validate_fact_value(definition, value)
        if mismatch is not None:
            raise ValueError(f"Invalid override for {fact_key}: {mismatch}")

        now = utcnow()
        display = format_display_value(definition, value)
        async with self._lock_for(deal_id):
            existing = {c.fact_key: c for c in await self._repository.load(deal_id)}
            current = existing.get(fact_key)
            if current is None:
                updated = CurrentFact(
                    deal_id=deal_id,
                    fact_key=fact_key,
                    category=definition.category,
                    current_value=value,
                    current_display_value=display,
                    current_source=FactSource.BA_OVERRIDE,
                    current_confidence=100.0,
                    current_extracted_text=reason,
                    first_seen_at=now,
                    last_updated_at=now,
                )
            else:
                updated = current.model_copy(
                    update={
                        "current_value": value,
                        "current_display_value": display,
                        "current_source": FactSource.BA_OVERRIDE,
                        "current_confidence": 100.0,
                        "current_source_document_id": None,
                        "current_extracted_text": reason,
                        "is_disputed": False,
                        "dispute_details": None,
                        "event_history": (
                            *current.event_history,
                            _prior_state(
                                current, FactEventType.OVERRIDDEN, now, reason=reason
                            ),
                        ),
                        "last_updated_at": now,
                    }
                )
            await self._repository.save(deal_id, [updated])

        logger.info("Deal %s: %s overridden by analyst", deal_id, fact_key)
        return updated
