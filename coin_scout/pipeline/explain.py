"""Single-coin explain path: risk/reward evaluation plus the multi-factor score when history allows."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from coin_scout.config import Config, get_config
from coin_scout.contracts import CoinScore, RiskRewardResult
from coin_scout.exceptions import DataFetchError, InsufficientDataError
from coin_scout.interfaces import Candidate, PriceHistory
from coin_scout.market_data import build_candidate
from coin_scout.risk_engine import RiskRewardEvaluator
from coin_scout.scoring.multi_factor import MultiFactorScorer

logger = logging.getLogger(__name__)


class CoinDetailProvider(Protocol):
    def coin_detail(self, coin_id: str) -> Dict[str, Any]:
        ...

    def price_history(self, coin_id: str, vs_currency: Optional[str] = None, days: Optional[int] = None) -> PriceHistory:
        ...


@dataclass(frozen=True)
class CoinExplanation:
    candidate: Candidate
    risk: RiskRewardResult
    score: Optional[CoinScore] = None


def explain_coin(
    provider: CoinDetailProvider,
    coin_id: str,
    config: Optional[Config] = None,
    evaluator: Optional[RiskRewardEvaluator] = None,
    scorer: Optional[MultiFactorScorer] = None,
) -> CoinExplanation:
    """Evaluate one coin. Missing detail yields the quarantine default; missing history only lowers confidence."""
    config = config or get_config()
    evaluator = evaluator or RiskRewardEvaluator()
    scorer = scorer or MultiFactorScorer()

    try:
        detail = provider.coin_detail(coin_id)
    except DataFetchError as exc:
        logger.warning(f"Could not fetch detail for {coin_id}: {exc}")
        placeholder = Candidate(id=coin_id, symbol=coin_id.upper(), name=coin_id)
        return CoinExplanation(candidate=placeholder, risk=evaluator.failure_result(placeholder))

    try:
        history = provider.price_history(coin_id, config.vs_currency, config.history_days)
    except DataFetchError as exc:
        logger.warning(f"Could not fetch volatility data for {coin_id}: {exc}")
        history = PriceHistory()

    candidate = build_candidate(detail, history)
    risk = evaluator.evaluate(candidate)

    score: Optional[CoinScore] = None
    try:
        score = scorer.score(candidate)
    except InsufficientDataError as exc:
        logger.info(f"No multi-factor score for {coin_id}: {exc}")

    return CoinExplanation(candidate=candidate, risk=risk, score=score)
