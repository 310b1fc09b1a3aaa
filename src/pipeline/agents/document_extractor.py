# src/pipeline/agents/document_extractor.py — v1
"""Document extractor — Tier 0 structured extraction from deal documents.

Reads every document's text and returns the company profile plus candidate
facts keyed by the fact taxonomy, each with a confidence and the verbatim
quote it came from. Candidates are not trusted here: the Fact Store applies
the confidence floor and type checks when they are ingested.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from dealscope.facts.models import ExtractedFact, FactSource
from dealscope.facts.taxonomy import FACT_KEYS
from dealscope.pipeline.agents.prompting import describe_deal, document_excerpts
from dealscope.pipeline.plugin_kit.base_agent import LLMAgent, warnings_from_payload
from dealscope.pipeline.plugin_kit.models import AgentOutput

if TYPE_CHECKING:
    from dealscope.core.models import Document, ExecutionContext

logger = logging.getLogger(__name__)

DOCUMENT_SOURCES: dict[str, FactSource] = {
    "pitch_deck": FactSource.PITCH_DECK,
    "financial_model": FactSource.FINANCIAL_MODEL,
    "data_room": FactSource.DATA_ROOM,
    "founder_response": FactSource.FOUNDER_RESPONSE,
}


class CandidateFact(BaseModel):
    fact_key: str
    value: Any
    confidence: float | None = None
    quote: str | None = None
    source_document_id: str | None = None
    unit: str | None = None
    period: str | None = None


class ExtractionOutput(BaseModel):
    """Output schema for the document extractor."""

    company_name: str | None = None
    tagline: str | None = None
    product_description: str | None = None
    business_model: str | None = None
    sector_hints: list[str] = Field(default_factory=list)
    competitors: list[str] = Field(default_factory=list)
    facts: list[CandidateFact] = Field(default_factory=list)
    early_warnings: list[dict[str, Any]] = Field(default_factory=list)


_SYSTEM_PROMPT = """\
You are a venture capital analyst extracting verifiable data from startup documents.
Only report figures that appear in the documents. For every fact give:
- fact_key: one of the allowed keys
- value: a number for currency/percentage/number keys (no symbols, percentages as 0-100),
  an ISO date for date keys, true/false for boolean keys, otherwise a string or list
- confidence: 0-100, how certain you are the value is stated as such
- quote: the exact sentence the value was taken from
- source_document_id: the id of the document containing the quote
Respond with a single JSON object."""


class DocumentExtractorAgent(LLMAgent):
    """Extract company profile and candidate facts from all documents."""

    max_tokens = 8192
    temperature = 0.0

    @property
    def output_schema(self) -> type[BaseModel]:
        return ExtractionOutput

    @property
    def system_prompt(self) -> str:
        return _SYSTEM_PROMPT

    def build_prompt(self, context: ExecutionContext) -> str:
        keys = "\n".join(
            f"- {d.key} ({d.type}{', ' + '/'.join(d.enum_values) if d.enum_values else ''})"
            for d in FACT_KEYS.values()
        )
        return (
            f"{describe_deal(context.deal)}\n\n"
            f"## Allowed fact keys\n{keys}\n\n"
            f"## Documents\n{document_excerpts(context.documents)}"
        )

    def to_output(self, parsed: BaseModel, context: ExecutionContext) -> AgentOutput:
        assert isinstance(parsed, ExtractionOutput)
        documents = {d.id: d for d in context.documents}
        facts = [
            to_extracted_fact(c, documents).model_dump(mode="json") for c in parsed.facts
        ]
        data = parsed.model_dump(mode="json", exclude={"facts"})
        data["facts"] = facts
        logger.info(
            "Extracted %d candidate facts from %d documents", len(facts), len(documents)
        )
        return AgentOutput(
            data=data,
            early_warnings=warnings_from_payload(self.name, data.get("early_warnings")),
        )


def to_extracted_fact(candidate: CandidateFact, documents: dict[str, Document]) -> ExtractedFact:
    """Attach the source implied by the quoted document's type."""
    document = documents.get(candidate.source_document_id or "")
    source = DOCUMENT_SOURCES.get(document.type, FactSource.PITCH_DECK) if document else FactSource.PITCH_DECK
    return ExtractedFact(
        fact_key=candidate.fact_key,
        value=candidate.value,
        source=source,
        source_document_id=candidate.source_document_id,
        source_confidence=candidate.confidence,
        extracted_text=candidate.quote,
        unit=candidate.unit,
        period=candidate.period,
    )


def facts_from_result(data: dict[str, Any] | None) -> list[ExtractedFact]:
    """Rebuild ExtractedFact candidates from an extractor result's data."""
    if not data:
        return []
    facts: list[ExtractedFact] = []
    for raw in data.get("facts") or []:
        try:
            facts.append(ExtractedFact.model_validate(raw))
        except ValueError as exc:
            logger.debug("Skipping malformed candidate fact: %s", exc)
    return facts
