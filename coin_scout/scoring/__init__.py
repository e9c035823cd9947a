"""
Unified Scoring Module

This module aggregates the scoring entry points:
- Multi-factor ranking score (technical, momentum, volume, volatility, fundamental)
- Independent risk/reward evaluation
"""

# ============================================================================
# MULTI-FACTOR SCORING (from coin_scout.scoring.multi_factor)
# ============================================================================
from coin_scout.scoring.multi_factor import (
    MultiFactorScorer,
    market_metrics,
    rank_candidates,
    sort_scores,
)

# ============================================================================
# RISK / REWARD (from coin_scout.risk_engine)
# ============================================================================
from coin_scout.risk_engine import (
    RiskRewardEvaluator,
    evaluate_risk_reward,
)

# ============================================================================
# PUBLIC API
# ============================================================================

__all__ = [
    "MultiFactorScorer",
    "market_metrics",
    "rank_candidates",
    "sort_scores",
    "RiskRewardEvaluator",
    "evaluate_risk_reward",
]
