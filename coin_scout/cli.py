"""
Command line entry point.

    python -m coin_scout rank --limit 50
    python -m coin_scout explain solana
    python -m coin_scout portfolio --risk Balanced --monthly 500

Percent inputs are given as percentages (e.g. ``--max-drawdown 30``) and
converted to fractions. Results are printed to stdout as JSON; logs go to
stderr.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from coin_scout.config import get_config
from coin_scout.exceptions import CoinScoutError
from coin_scout.logging_config import level_from_name, setup_logging
from coin_scout.market_data import CoinGeckoProvider
from coin_scout.pipeline.explain import explain_coin
from coin_scout.pipeline.fallback_tracking import get_fallback_status
from coin_scout.pipeline.ranking import rank_coins
from coin_scout.pipeline.starter_portfolio import generate_starter_portfolio
from coin_scout.policy import REBALANCE_CADENCES, IntakePreferences
from coin_scout.serialization import (
    explanation_to_record,
    export_scores_csv,
    portfolio_to_record,
    score_to_record,
)

logger = logging.getLogger(__name__)


def _percent(value: str) -> float:
    try:
        pct = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if not 0.0 <= pct <= 100.0:
        raise argparse.ArgumentTypeError(f"percentage must be within 0-100, got {pct}")
    return pct / 100.0


def _coin_list(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coin_scout",
        description="Coin Scout: crypto multi-factor ranking and starter allocations",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    rank = sub.add_parser("rank", help="Rank the top coins by multi-factor score")
    rank.add_argument("--limit", type=int, default=None, help="Number of coins to rank (default: RANK_LIMIT)")
    rank.add_argument("--days", type=int, default=None, help="Days of price history (default: HISTORY_DAYS)")
    rank.add_argument("--workers", type=int, default=None, help="Parallel fetch workers (default: MAX_WORKERS)")
    rank.add_argument("--deadline", type=float, default=None, help="Run deadline in seconds (default: RUN_DEADLINE_SEC)")
    rank.add_argument("--top", type=int, default=None, help="Only print the first N results")
    rank.add_argument("--csv", type=Path, default=None, help="Also export the ranking to this CSV path")

    explain = sub.add_parser("explain", help="Risk/reward breakdown for one coin")
    explain.add_argument("coin_id", help="Provider coin id, e.g. 'solana'")

    portfolio = sub.add_parser("portfolio", help="Generate a starter portfolio")
    portfolio.add_argument("--risk", default="Balanced", help="Conservative, Balanced or Aggressive")
    portfolio.add_argument("--monthly", type=float, default=0.0, help="Monthly contribution in USD")
    portfolio.add_argument("--lump-sum", type=float, default=0.0, help="Initial lump sum in USD")
    portfolio.add_argument("--experience", default="Beginner")
    portfolio.add_argument("--horizon", default="Long")
    portfolio.add_argument("--max-drawdown", type=_percent, default=0.30, help="Drawdown comfort in percent: 15, 30 or 50")
    portfolio.add_argument("--stable-buffer", type=_percent, default=0.0, help="Stablecoin buffer in percent")
    portfolio.add_argument("--min-mcap", type=float, default=0.0, help="Minimum market cap in USD")
    portfolio.add_argument("--min-vol-mcap", type=_percent, default=0.0, help="Minimum volume/market-cap in percent")
    portfolio.add_argument("--exclude", type=_coin_list, default=[], help="Comma-separated coin ids to exclude")
    portfolio.add_argument("--holdings", type=int, nargs=2, metavar=("MIN", "MAX"), default=None)
    portfolio.add_argument("--rebalance", choices=REBALANCE_CADENCES, default="Quarterly")
    portfolio.add_argument("--no-advisory", action="store_true", help="Skip the advisory plug-in")
    return parser


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_rank(args: argparse.Namespace, provider) -> int:
    run = rank_coins(
        provider,
        limit=args.limit,
        days=args.days,
        max_workers=args.workers,
        deadline_sec=args.deadline,
    )
    scores = list(run.scores)
    if args.csv:
        export_scores_csv(scores, args.csv, metadata={"requested": run.requested})
    shown = scores[: args.top] if args.top else scores
    _print_json({
        "requested": run.requested,
        "scored": len(scores),
        "skipped": dict(run.skipped),
        "failed": dict(run.failed),
        "timed_out": list(run.timed_out),
        "results": [score_to_record(s) for s in shown],
    })
    return 0


def cmd_explain(args: argparse.Namespace, provider) -> int:
    _print_json(explanation_to_record(explain_coin(provider, args.coin_id.lower())))
    return 0


def cmd_portfolio(args: argparse.Namespace, provider) -> int:
    intake = IntakePreferences(
        risk_tolerance=args.risk,
        experience=args.experience,
        horizon=args.horizon,
        max_drawdown_comfort=args.max_drawdown,
        monthly_contribution_usd=args.monthly,
        initial_lump_sum_usd=args.lump_sum,
        excluded_coin_ids=tuple(args.exclude),
        min_market_cap_usd=args.min_mcap,
        min_volume_to_mcap=args.min_vol_mcap,
        holdings_range=tuple(args.holdings) if args.holdings else None,
        rebalance=args.rebalance,
        stablecoin_buffer_pct=args.stable_buffer,
    )
    result = generate_starter_portfolio(intake, provider=provider, use_advisory=not args.no_advisory)
    record = portfolio_to_record(result)
    record["fallback"] = get_fallback_status()
    _print_json(record)
    return 0


COMMANDS = {
    "rank": cmd_rank,
    "explain": cmd_explain,
    "portfolio": cmd_portfolio,
}


def main(argv: Optional[Sequence[str]] = None, provider=None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(level_from_name(args.log_level or config.log_level), stream=sys.stderr)

    provider = provider or CoinGeckoProvider(config)
    try:
        return COMMANDS[args.command](args, provider)
    except CoinScoutError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
