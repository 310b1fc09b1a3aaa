# src/main.py — v2
"""CLI entry point — analyze, facts, credits commands.

Usage:
    dealscope analyze <case.json> [--express] [--force-refresh] [--max-cost USD]
    dealscope facts <case.json> [--json]
    dealscope credits <user_id> [--add N]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dealscope.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dealscope",
        description=f"dealscope v{__version__} — multi-agent investment due diligence",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Run the full analysis on a JSON case file",
    )
    p_analyze.add_argument("case_file", type=Path, help="Path to case file")
    p_analyze.add_argument(
        "--express", action="store_true",
        help="Run tiers 0-1 only",
    )
    p_analyze.add_argument(
        "--force-refresh", action="store_true",
        help="Ignore cached results",
    )
    p_analyze.add_argument(
        "--max-cost", type=float, default=None,
        help="Stop scheduling tiers once this USD cost is reached",
    )
    p_analyze.add_argument(
        "--fail-fast", action="store_true",
        help="Stop after the first critical early warning",
    )
    p_analyze.add_argument(
        "--json", action="store_true",
        help="Print the full run as JSON",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- facts ---
    p_facts = subparsers.add_parser(
        "facts", help="Ingest the facts of a case file and show the result",
    )
    p_facts.add_argument("case_file", type=Path, help="Path to case file")
    p_facts.add_argument(
        "--json", action="store_true",
        help="Print current facts as JSON",
    )
    p_facts.set_defaults(func=_cmd_facts)

    # --- credits ---
    p_credits = subparsers.add_parser(
        "credits", help="Show or top up a user's credits",
    )
    p_credits.add_argument("user_id", help="User identifier")
    p_credits.add_argument(
        "--add", type=int, default=None,
        help="Add extra credits",
    )
    p_credits.set_defaults(func=_cmd_credits)

    return parser


async def _cmd_analyze(args: argparse.Namespace) -> int:
    """Execute a full analysis of one case file."""
    from dealscope.api.facade import build_orchestrator
    from dealscope.cache.cache_factory import create_cache_store
    from dealscope.config.settings import load_settings
    from dealscope.core.models import AnalysisOptions
    from dealscope.core.providers import StaticCaseProvider, load_case_file
    from dealscope.pipeline.agents.context_enrichment import StaticContextEngine

    case_file: Path = args.case_file
    if not case_file.exists():
        logger.error("File not found: %s", case_file)
        return 1

    settings = load_settings()
    case = load_case_file(case_file)
    cache = create_cache_store(settings)
    orchestrator = build_orchestrator(
        settings,
        StaticCaseProvider([case]),
        cache=cache,
        context_engine=StaticContextEngine({case.deal.id: case.context}),
    )

    def on_warning(warning) -> None:
        print(f"  !! [{warning.severity.upper()}] {warning.agent_name}: {warning.title}")

    def on_progress(update) -> None:
        status = "ok" if update.latest_result and update.latest_result.success else "failed"
        print(f"  [{update.completed_agents}/{update.total_agents}] {update.current_agent}: {status}")

    options = AnalysisOptions(
        mode="express" if args.express else "full",
        force_refresh=args.force_refresh,
        max_cost_usd=args.max_cost,
        fail_fast_on_critical=args.fail_fast,
        on_progress=on_progress,
        on_early_warning=on_warning,
    )

    logger.info("Analyzing deal %s (%d documents)", case.deal.id, len(case.documents))
    try:
        run = await orchestrator.run_full_analysis(case.deal.id, options)
    finally:
        await cache.close()

    if args.json:
        print(run.model_dump_json(indent=2))
    else:
        _print_run_summary(run)
    return 0 if run.status == "success" else 2


async def _cmd_facts(args: argparse.Namespace) -> int:
    """Ingest the case file's facts into the configured fact store."""
    from dealscope.api.facade import build_fact_store
    from dealscope.config.settings import load_settings
    from dealscope.core.providers import load_case_file
    from dealscope.facts.formatting import facts_as_json, format_fact_store
    from dealscope.facts.matching import format_contradiction

    case_file: Path = args.case_file
    if not case_file.exists():
        logger.error("File not found: %s", case_file)
        return 1

    settings = load_settings()
    case = load_case_file(case_file)
    store = build_fact_store(settings)
    try:
        result = await store.ingest_facts(case.deal.id, case.facts)
        current = await store.get_current_facts(case.deal.id)
    finally:
        store.repository.close()

    if args.json:
        print(facts_as_json(current))
        return 0

    print(f"\nIngestion for deal {case.deal.id}:")
    print(f"  Accepted:        {len(result.accepted)}")
    print(f"  Rejected:        {len(result.rejected)}")
    print(f"  Contradictions:  {len(result.contradictions)}")
    for rejected in result.rejected:
        print(f"    - rejected {rejected.fact_key}: {rejected.reason} {rejected.detail}".rstrip())
    for contradiction in result.contradictions:
        print(f"    - {format_contradiction(contradiction)}")
    print()
    print(format_fact_store(current))
    return 0


async def _cmd_credits(args: argparse.Namespace) -> int:
    """Display (and optionally top up) a user's credit balance."""
    from dealscope.config.settings import load_settings
    from dealscope.credits.ledger import CreditLedger

    settings = load_settings()
    ledger = CreditLedger(
        settings.credits_db_path, default_allocation=settings.credits_monthly_allocation
    )
    if args.add:
        status = await ledger.add_extra(args.user_id, args.add)
    else:
        await ledger.ensure_account(args.user_id)
        status = await ledger.get_status(args.user_id)

    print(f"\nCredits for {status.user_id} ({status.period}):")
    print(f"  Monthly:    {status.used_this_month}/{status.monthly_allocation} used")
    print(f"  Extra:      {status.extra_credits}")
    print(f"  Available:  {status.total_available}")
    print(f"  Next reset: {status.next_reset_date.isoformat()}")
    return 0


def _print_run_summary(run: object) -> None:
    """Print a human-readable summary of an AnalysisRun."""
    from dealscope.tracking.cost_calculator import summarize_run_costs

    costs = summarize_run_costs(run.results)
    print(f"\nAnalysis {run.status}:")
    print(f"  Run ID:       {run.run_id}{' (cached)' if run.from_cache else ''}")
    print(f"  Agents:       {run.success_count}/{len(run.results)} succeeded")
    print(f"  Tiers:        {run.tiers_completed}")
    print(f"  Cost:         ${run.total_cost:.4f}")
    if costs.most_expensive_agent:
        print(f"  Top spender:  {costs.most_expensive_agent}")
    print(f"  Time:         {run.total_time_ms / 1000:.1f}s")
    if run.coherence:
        print(
            f"  Coherence:    {run.coherence.get('score')}/100 "
            f"grade {run.coherence.get('grade')} → {run.coherence.get('recommendation')}"
        )
    if run.stopped_reason:
        print(f"  Stopped:      {run.stopped_reason}")
    for warning in run.early_warnings:
        print(f"  Warning:      [{warning.severity}] {warning.title} ({warning.agent_name})")
    failed = [r for r in run.results.values() if not r.success]
    for result in failed:
        print(f"  Failed:       {result.agent_name}: {result.error}")
    print(f"\n{run.summary}")


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from dealscope.config.settings import ConfigurationError, load_settings
    from dealscope.logging.logger import setup_logging

    try:
        settings = load_settings()
    except ConfigurationError:
        settings = None
    level = "DEBUG" if verbose else (settings.log_level if settings else "INFO")
    setup_logging(
        level=level,
        log_format=settings.log_format if settings else "text",
        log_file=str(settings.log_file) if settings and settings.log_file else None,
        rotation=settings.log_rotation if settings else "10MB",
        retention=settings.log_retention if settings else 30,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
