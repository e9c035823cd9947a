"""coin_scout.pipeline: ranking, explain and starter-portfolio runs.

Re-exports the public API for convenient access via ``coin_scout.pipeline``.
"""

from coin_scout.pipeline.fallback_tracking import (
    get_fallback_status,
    record_advisory_fallback,
    reset_fallback_state,
)
from coin_scout.pipeline.ranking import (
    RankingRun,
    list_universe,
    rank_coins,
    score_market_row,
)
from coin_scout.pipeline.explain import (
    CoinExplanation,
    explain_coin,
)
from coin_scout.pipeline.starter_portfolio import (
    build_checklist,
    build_guardrails,
    generate_starter_portfolio,
)

__all__ = [
    "get_fallback_status",
    "record_advisory_fallback",
    "reset_fallback_state",
    "RankingRun",
    "list_universe",
    "rank_coins",
    "score_market_row",
    "CoinExplanation",
    "explain_coin",
    "build_checklist",
    "build_guardrails",
    "generate_starter_portfolio",
]
