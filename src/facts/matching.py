# src/facts/matching.py — v1
"""Contradiction detection between a new fact and a deal's current value.

Numeric keys compare by relative delta against the existing value:
    delta < 10%          → MINOR
    10% <= delta < 30%   → SIGNIFICANT
    delta >= 30%         → MAJOR
Each band includes its lower bound. Non-numeric keys (and numeric keys whose
values cannot be read as numbers) contradict as MAJOR on any mismatch.
An exactly equal value is never a contradiction.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from dealscope.facts.models import Contradiction, CurrentFact, Fact, Significance
from dealscope.facts.taxonomy import is_numeric_key

logger = logging.getLogger(__name__)

SIGNIFICANT_THRESHOLD = 0.10
MAJOR_THRESHOLD = 0.30

# Deltas are rounded before banding so 50_000 / 500_000 lands exactly on 10%.
_DELTA_PRECISION = 9

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def extract_numeric_value(value: Any) -> float | None:
    """Read a number out of a stored fact value.

    Accepts plain numbers, formatted strings ("€1,200,000") and objects with
    an ``amount`` or ``value`` field.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        if not cleaned or cleaned in {".", "-", "-."}:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    if isinstance(value, dict):
        if "amount" in value:
            return extract_numeric_value(value["amount"])
        if "value" in value:
            return extract_numeric_value(value["value"])
    return None


def calculate_delta(new_value: float, existing_value: float) -> float:
    """Relative difference |new - existing| / |existing| as a fraction.

    An existing value of zero yields 1.0 (100%) unless both are zero.
    """
    if new_value == existing_value:
        return 0.0
    if existing_value == 0:
        return 1.0
    delta = abs(new_value - existing_value) / abs(existing_value)
    return round(delta, _DELTA_PRECISION)


def classify_delta(delta: float) -> Significance:
    if delta >= MAJOR_THRESHOLD:
        return "MAJOR"
    if delta >= SIGNIFICANT_THRESHOLD:
        return "SIGNIFICANT"
    return "MINOR"


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality, insensitive to dict key order."""
    if a == b:
        return True
    try:
        return json.dumps(a, sort_keys=True, default=str) == json.dumps(
            b, sort_keys=True, default=str
        )
    except (TypeError, ValueError):
        return False


def detect_contradiction(fact: Fact, current: CurrentFact) -> Contradiction | None:
    """Compare an accepted fact to the current value of the same key.

    Returns None when the values agree.
    """
    if fact.fact_key != current.fact_key:
        raise ValueError(
            f"Cannot compare {fact.fact_key!r} against {current.fact_key!r}"
        )

    if values_equal(fact.value, current.current_value):
        return None

    delta_percent: float | None = None
    significance: Significance = "MAJOR"

    if is_numeric_key(fact.fact_key):
        new_num = extract_numeric_value(fact.value)
        old_num = extract_numeric_value(current.current_value)
        if new_num is not None and old_num is not None:
            delta = calculate_delta(new_num, old_num)
            if delta == 0.0:
                return None
            significance = classify_delta(delta)
            delta_percent = round(delta * 100, 2)

    contradiction = Contradiction(
        fact_key=fact.fact_key,
        new_value=fact.value,
        existing_value=current.current_value,
        new_source=fact.source,
        existing_source=current.current_source,
        delta_percent=delta_percent,
        significance=significance,
    )
    logger.debug(
        "Contradiction on %s: %r -> %r (%s, delta=%s%%)",
        fact.fact_key,
        current.current_value,
        fact.value,
        significance,
        delta_percent,
    )
    return contradiction


def format_contradiction(contradiction: Contradiction) -> str:
    """One-line human-readable description."""
    delta = (
        f" ({contradiction.delta_percent:.1f}% difference)"
        if contradiction.delta_percent is not None
        else ""
    )
    return (
        f"{contradiction.significance} contradiction on {contradiction.fact_key!r}: "
        f"{contradiction.existing_value!r} ({contradiction.existing_source.value}) vs "
        f"{contradiction.new_value!r} ({contradiction.new_source.value}){delta}"
    )
