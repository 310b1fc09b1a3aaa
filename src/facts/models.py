# src/facts/models.py — v1
"""Fact store domain models.

ExtractedFact is an untrusted candidate coming out of an extraction agent.
Fact is an accepted, immutable record. CurrentFact is the per-deal,
per-key reconciled value with its append-only history of prior states.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FactType = Literal[
    "currency", "percentage", "number", "string", "date", "boolean", "array", "enum"
]

Significance = Literal["MINOR", "SIGNIFICANT", "MAJOR"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FactCategory(str, Enum):
    FINANCIAL = "FINANCIAL"
    TRACTION = "TRACTION"
    TEAM = "TEAM"
    MARKET = "MARKET"
    PRODUCT = "PRODUCT"
    COMPETITION = "COMPETITION"
    LEGAL = "LEGAL"
    OTHER = "OTHER"


class FactSource(str, Enum):
    PITCH_DECK = "PITCH_DECK"
    FINANCIAL_MODEL = "FINANCIAL_MODEL"
    DATA_ROOM = "DATA_ROOM"
    FOUNDER_RESPONSE = "FOUNDER_RESPONSE"
    CONTEXT_ENGINE = "CONTEXT_ENGINE"
    BA_OVERRIDE = "BA_OVERRIDE"


SOURCE_PRIORITY: dict[FactSource, int] = {
    FactSource.DATA_ROOM: 100,
    FactSource.BA_OVERRIDE: 100,
    FactSource.FINANCIAL_MODEL: 95,
    FactSource.PITCH_DECK: 80,
    FactSource.FOUNDER_RESPONSE: 70,
    FactSource.CONTEXT_ENGINE: 60,
}


class FactEventType(str, Enum):
    """How a prior state left the current slot."""

    SUPERSEDED = "SUPERSEDED"
    DISPUTED = "DISPUTED"
    OVERRIDDEN = "OVERRIDDEN"


class FactKeyDefinition(BaseModel):
    """One row of the canonical fact-key taxonomy."""

    model_config = ConfigDict(frozen=True)

    key: str
    category: FactCategory
    type: FactType
    description: str
    unit: str | None = None
    enum_values: tuple[str, ...] | None = None
    is_temporal: bool = False


class ExtractedFact(BaseModel):
    """Candidate fact as produced by an extraction agent.

    Confidence and evidence are optional here on purpose: they are what
    ingestion checks before anything is accepted.
    """

    fact_key: str
    value: Any
    source: FactSource = FactSource.PITCH_DECK
    source_document_id: str | None = None
    source_confidence: float | None = None
    extracted_text: str | None = None
    unit: str | None = None
    period: str | None = None


class Fact(BaseModel):
    """Accepted fact. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    fact_key: str
    category: FactCategory
    value: Any
    display_value: str
    unit: str | None = None
    source: FactSource
    source_priority: int
    source_document_id: str | None = None
    source_confidence: float
    extracted_text: str
    created_at: datetime = Field(default_factory=utcnow)


class Contradiction(BaseModel):
    """Mismatch between a new fact and the deal's current value for its key."""

    model_config = ConfigDict(frozen=True)

    fact_key: str
    new_value: Any
    existing_value: Any
    new_source: FactSource
    existing_source: FactSource
    delta_percent: float | None = None
    significance: Significance


class FactEvent(BaseModel):
    """A prior state of a CurrentFact, kept forever."""

    model_config = ConfigDict(frozen=True)

    event_type: FactEventType
    value: Any
    display_value: str
    source: FactSource
    confidence: float
    source_document_id: str | None = None
    extracted_text: str | None = None
    recorded_at: datetime
    replaced_at: datetime
    contradiction: Contradiction | None = None
    reason: str | None = None


class DisputeDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    conflicting_value: Any
    conflicting_source: FactSource
    significance: Significance
    delta_percent: float | None = None


class CurrentFact(BaseModel):
    """Latest reconciled value for one fact key of one deal."""

    model_config = ConfigDict(frozen=True)

    deal_id: str
    fact_key: str
    category: FactCategory
    current_value: Any
    current_display_value: str
    current_source: FactSource
    current_confidence: float
    current_source_document_id: str | None = None
    current_extracted_text: str | None = None
    is_disputed: bool = False
    dispute_details: DisputeDetails | None = None
    event_history: tuple[FactEvent, ...] = ()
    first_seen_at: datetime
    last_updated_at: datetime


class RejectedFact(BaseModel):
    """Candidate dropped at ingestion. Logged, never stored."""

    fact_key: str
    value: Any = None
    reason: Literal[
        "low_confidence",
        "missing_confidence",
        "invalid_confidence",
        "missing_evidence",
        "unknown_key",
        "type_mismatch",
        "duplicate",
        "overridden",
    ]
    detail: str = ""


class IngestionResult(BaseModel):
    """Outcome of reconciling one batch of candidates."""

    accepted: list[Fact] = Field(default_factory=list)
    contradictions: list[Contradiction] = Field(default_factory=list)
    rejected: list[RejectedFact] = Field(default_factory=list)

    @property
    def has_major_contradiction(self) -> bool:
        return any(c.significance == "MAJOR" for c in self.contradictions)
