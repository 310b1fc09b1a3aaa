# src/cache/fingerprint.py — v3
"""Deal fingerprinting for analysis-level caching.

A deal's fingerprint changes whenever its metadata or any document's
content changes, so a cached run is only reused for identical inputs.
Document text is normalized first: whitespace and case differences do not
invalidate the cache.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dealscope.core.models import Deal, Document


def content_hash(text: str) -> str:
    """SHA-256 of normalized text (case and whitespace folded)."""
    return hashlib.sha256(_normalize_text(text).encode("utf-8")).hexdigest()


def deal_fingerprint(deal: Deal, documents: Iterable[Document], mode: str = "full") -> str:
    """Stable hex digest over deal metadata, analysis mode and document contents."""
    payload = {
        "deal": deal.model_dump(mode="json"),
        "mode": mode,
        "documents": sorted(
            (doc.id, doc.type, content_hash(doc.extracted_text)) for doc in documents
        ),
    }
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:32]


def stable_key(*parts: object) -> str:
    """Short digest of arbitrary JSON-serializable parts."""
    encoded = json.dumps(parts, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:24]


def _normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower()).strip()
