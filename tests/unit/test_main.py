# tests/unit/test_main.py — v1
"""Tests for main.py — CLI argument handling and commands."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dealscope.core.models import AgentResult, AnalysisRun
from dealscope.main import _build_parser, main


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every command from an empty directory with local storage paths."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CREDITS_DB_PATH", str(tmp_path / "credits.db"))
    monkeypatch.setenv("FACT_STORE_PATH", str(tmp_path / "facts.db"))
    monkeypatch.setenv("LOG_FORMAT", "text")


@pytest.fixture
def case_file(tmp_path):
    path = tmp_path / "case.json"
    path.write_text(
        json.dumps(
            {
                "deal": {"id": "d1", "name": "Acme", "sector": "SaaS"},
                "documents": [{"id": "doc1", "name": "deck.pdf", "extracted_text": "ARR 600K"}],
                "facts": [
                    {
                        "fact_key": "financial.arr",
                        "value": 600000,
                        "source_confidence": 90,
                        "extracted_text": "ARR 600K",
                    },
                    {
                        "fact_key": "team.size",
                        "value": 8,
                        "source_confidence": 40,
                        "extracted_text": "about 8 people",
                    },
                ],
            }
        )
    )
    return path


class TestParser:
    def test_analyze_flags(self):
        args = _build_parser().parse_args(
            ["analyze", "case.json", "--express", "--max-cost", "1.5", "--fail-fast"]
        )
        assert args.express and args.fail_fast
        assert args.max_cost == 1.5
        assert not args.force_refresh

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestAnalyze:
    def test_missing_file(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.json")]) == 1

    def test_runs_orchestrator(self, case_file, capsys):
        run = AnalysisRun(
            run_id="r1",
            deal_id="d1",
            status="success",
            results={"deck-forensics": AgentResult(agent_name="deck-forensics", success=True, cost=0.02)},
            total_cost=0.02,
            summary="success: 1/1 agents succeeded",
        )
        orchestrator = MagicMock()
        orchestrator.run_full_analysis = AsyncMock(return_value=run)

        with patch("dealscope.api.facade.build_orchestrator", return_value=orchestrator):
            code = main(["analyze", str(case_file), "--express"])

        assert code == 0
        deal_id, options = orchestrator.run_full_analysis.await_args.args
        assert deal_id == "d1"
        assert options.mode == "express"
        out = capsys.readouterr().out
        assert "Run ID:       r1" in out
        assert "1/1 succeeded" in out

    def test_failed_run_exit_code(self, case_file):
        run = AnalysisRun(run_id="r2", deal_id="d1", status="failed")
        orchestrator = MagicMock()
        orchestrator.run_full_analysis = AsyncMock(return_value=run)
        with patch("dealscope.api.facade.build_orchestrator", return_value=orchestrator):
            assert main(["analyze", str(case_file), "--json"]) == 2


class TestFacts:
    def test_ingestion_report(self, case_file, capsys):
        assert main(["facts", str(case_file)]) == 0
        out = capsys.readouterr().out
        assert "Accepted:        1" in out
        assert "Rejected:        1" in out
        assert "team.size" in out

    def test_json(self, case_file, capsys):
        assert main(["facts", str(case_file), "--json"]) == 0
        facts = json.loads(capsys.readouterr().out)
        assert facts["financial"]["arr"]["value"] == 600000
        assert "team" not in facts


class TestCredits:
    def test_show(self, capsys):
        assert main(["credits", "u1"]) == 0
        out = capsys.readouterr().out
        assert "Available:  10" in out

    def test_add(self, capsys):
        assert main(["credits", "u1", "--add", "5"]) == 0
        assert "Extra:      5" in capsys.readouterr().out
