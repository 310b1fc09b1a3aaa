# src/core/providers.py — v1
"""Deal metadata and document providers.

The orchestrator only needs "give me the deal and its documents". Storage of
deals is outside this package; ``StaticCaseProvider`` serves in-memory case
files (CLI, tests).
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from dealscope.core.models import Deal, Document
from dealscope.facts.models import ExtractedFact

logger = logging.getLogger(__name__)


class DealNotFoundError(LookupError):
    """Raised when a provider has no deal with the requested id."""


class CaseProvider(ABC):
    """Source of deal metadata and extracted document text."""

    @abstractmethod
    async def get_deal(self, deal_id: str) -> Deal:
        """Return the deal or raise DealNotFoundError."""

    @abstractmethod
    async def get_documents(self, deal_id: str) -> list[Document]:
        """Return the deal's documents (possibly empty)."""


class CaseFile(BaseModel):
    """JSON case file: a deal, its documents and optional pre-extracted facts."""

    deal: Deal
    documents: list[Document] = Field(default_factory=list)
    facts: list[ExtractedFact] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)


def load_case_file(path: str | Path) -> CaseFile:
    """Read and validate a case file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the content does not match CaseFile.
    """
    path = Path(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    case = CaseFile.model_validate(data)
    logger.debug(
        "Loaded case file %s: deal=%s documents=%d facts=%d",
        path, case.deal.id, len(case.documents), len(case.facts),
    )
    return case


class StaticCaseProvider(CaseProvider):
    def __init__(self, cases: list[CaseFile] | None = None) -> None:
        self._cases: dict[str, CaseFile] = {}
        for case in cases or []:
            self.add(case)

    def add(self, case: CaseFile) -> None:
        self._cases[case.deal.id] = case

    async def get_deal(self, deal_id: str) -> Deal:
        case = self._cases.get(deal_id)
        if case is None:
            raise DealNotFoundError(f"Deal '{deal_id}' not found")
        return case.deal

    async def get_documents(self, deal_id: str) -> list[Document]:
        case = self._cases.get(deal_id)
        return list(case.documents) if case else []
