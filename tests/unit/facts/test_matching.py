# tests/unit/facts/test_matching.py — v1
"""Tests for facts/matching.py — numeric extraction, delta bands, formatting."""

from __future__ import annotations

import pytest

from dealscope.facts.matching import (
    calculate_delta,
    classify_delta,
    detect_contradiction,
    extract_numeric_value,
    format_contradiction,
    values_equal,
)
from dealscope.facts.models import Contradiction, ExtractedFact, FactSource
from dealscope.facts.store import ingest


class TestExtractNumericValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (42, 42.0),
            (1.5, 1.5),
            ("€1,200,000", 1_200_000.0),
            ("-3.5%", -3.5),
            ({"amount": 10}, 10.0),
            ({"value": "7"}, 7.0),
        ],
    )
    def test_readable(self, value, expected):
        assert extract_numeric_value(value) == expected

    @pytest.mark.parametrize("value", [True, None, "n/a", "-", [1], {"other": 1}])
    def test_unreadable(self, value):
        assert extract_numeric_value(value) is None


class TestDelta:
    def test_relative_to_existing(self):
        assert calculate_delta(450_000, 500_000) == 0.1
        assert calculate_delta(550_000, 500_000) == 0.1

    def test_zero_existing(self):
        assert calculate_delta(5, 0) == 1.0
        assert calculate_delta(0, 0) == 0.0

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [(0.0999, "MINOR"), (0.10, "SIGNIFICANT"), (0.2999, "SIGNIFICANT"), (0.30, "MAJOR")],
    )
    def test_bands_lower_bound_inclusive(self, delta, expected):
        assert classify_delta(delta) == expected


class TestValuesEqual:
    def test_dict_key_order(self):
        assert values_equal({"a": 1, "b": 2}, {"b": 2, "a": 1})

    def test_lists_order_matters(self):
        assert not values_equal(["a", "b"], ["b", "a"])


class TestDetectContradiction:
    def test_key_mismatch_raises(self, make_current_fact):
        fact = ingest(
            [ExtractedFact(fact_key="financial.mrr", value=1, source_confidence=90, extracted_text="x")],
            [],
        ).accepted[0]
        with pytest.raises(ValueError):
            detect_contradiction(fact, make_current_fact("financial.arr", 1))

    def test_boolean_mismatch_is_major(self, make_current_fact):
        fact = ingest(
            [
                ExtractedFact(
                    fact_key="legal.pending_litigation", value=True,
                    source_confidence=90, extracted_text="pending suit",
                )
            ],
            [],
        ).accepted[0]
        c = detect_contradiction(fact, make_current_fact("legal.pending_litigation", False))
        assert c is not None
        assert c.significance == "MAJOR"


class TestFormatContradiction:
    def test_with_delta(self):
        c = Contradiction(
            fact_key="financial.arr",
            new_value=450_000,
            existing_value=500_000,
            new_source=FactSource.DATA_ROOM,
            existing_source=FactSource.PITCH_DECK,
            delta_percent=10.0,
            significance="SIGNIFICANT",
        )
        text = format_contradiction(c)
        assert text.startswith("SIGNIFICANT contradiction on 'financial.arr'")
        assert "(PITCH_DECK)" in text
        assert "10.0% difference" in text
