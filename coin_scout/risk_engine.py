from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Tuple

from coin_scout import indicators
from coin_scout.contracts import RiskRewardResult
from coin_scout.interfaces import Candidate, RiskCategory
from coin_scout.scoring_config import (
    ADOPTION_UNRANKED,
    ADOPTION_VOLUME_DIVISOR,
    ADOPTION_VOLUME_MAX,
    EXPLANATION_BANDS,
    GROWTH_BASE_FLOOR,
    GROWTH_CAP_BANDS,
    GROWTH_MOMENTUM_MULTIPLIER,
    INDICATOR_PERIODS,
    LIQUIDITY_RISK_BANDS,
    LIQUIDITY_RISK_FLOOR,
    LIQUIDITY_RISK_NO_CAP,
    LIQUIDITY_RISK_NO_VOLUME,
    MARKET_CAP_RISK_BANDS,
    MARKET_CAP_RISK_FLOOR,
    TOKENOMICS_RULES,
    UTILITY_BASE,
    UTILITY_KEYWORDS,
    VOLATILITY_RISK_DEFAULT,
    VOLATILITY_RISK_SCALE,
    RiskModelConfig,
    DEFAULT_RISK_MODEL_CONFIG,
)

logger = logging.getLogger(__name__)

CATEGORY_SENTENCES: Dict[RiskCategory, str] = {
    RiskCategory.CORE: "This is a core holding - established, lower-risk cryptocurrency suitable for portfolio foundation.",
    RiskCategory.MEDIUM: "This is a medium-risk investment with balanced risk/reward characteristics.",
    RiskCategory.HIGH_RISK: "This is a high-risk, high-reward opportunity. Only suitable for risk-tolerant investors.",
    RiskCategory.QUARANTINE: "This asset is in quarantine due to high risk or insufficient data. Avoid or research extensively.",
}

FAILURE_EXPLANATION = "Unable to calculate accurate risk score due to insufficient data."

DEFAULT_RISK_FACTORS: Dict[str, float] = {
    "volatility": 80.0,
    "market_cap": 90.0,
    "liquidity": 85.0,
    "age": 70.0,
    "development": 60.0,
    "centralization": 70.0,
    "regulatory": 80.0,
    "technical": 60.0,
}

DEFAULT_REWARD_FACTORS: Dict[str, float] = {
    "growth": 10.0,
    "adoption": 5.0,
    "innovation": 10.0,
    "partnerships": 10.0,
    "utility": 15.0,
    "community": 10.0,
    "tokenomics": 20.0,
}


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(max(low, min(high, value)))


def _band(value: float, bands, floor: float) -> float:
    for threshold, score in bands:
        if value >= threshold:
            return score
    return floor


def _level(score: float) -> str:
    if score <= EXPLANATION_BANDS["low"]:
        return "low"
    if score <= EXPLANATION_BANDS["medium"]:
        return "medium"
    return "high"


class RiskRewardEvaluator:
    """Rules-based risk/reward model for a single asset, independent of the ranking score.

    Risk factors (higher = riskier) and reward factors (higher = better) are
    each scored 0-100 and combined with fixed weights. The evaluator never
    raises: any internal failure yields a quarantine result with confidence 0.
    """

    def __init__(self, config: Optional[RiskModelConfig] = None) -> None:
        self.config = config or DEFAULT_RISK_MODEL_CONFIG

    def evaluate(self, candidate: Candidate) -> RiskRewardResult:
        try:
            return self._evaluate(candidate)
        except Exception as exc:
            logger.warning(f"Risk evaluation failed for {getattr(candidate, 'id', '?')}: {exc}")
            return self.failure_result(candidate)

    def failure_result(self, candidate: Candidate) -> RiskRewardResult:
        return RiskRewardResult(
            coin_id=str(getattr(candidate, "id", "")),
            name=str(getattr(candidate, "name", "")),
            risk_score=95.0,
            reward_score=5.0,
            category=RiskCategory.QUARANTINE,
            confidence=0.0,
            explanation=FAILURE_EXPLANATION,
            risk_factors=dict(DEFAULT_RISK_FACTORS),
            reward_factors=dict(DEFAULT_REWARD_FACTORS),
        )

    # ------------------------------------------------------------------

    def _evaluate(self, candidate: Candidate) -> RiskRewardResult:
        volatility_factor, volatility_defaulted = self.volatility_risk(candidate.prices)
        risk_factors = {
            "volatility": volatility_factor,
            "market_cap": self.market_cap_risk(candidate.market_cap),
            "liquidity": self.liquidity_risk(candidate.volume_24h, candidate.market_cap),
            "age": self._known_coin("age", candidate.id),
            "development": self._known_coin("development", candidate.id),
            "centralization": self._known_coin("centralization", candidate.id),
            "regulatory": self._known_coin("regulatory", candidate.id),
            "technical": self._known_coin("technical", candidate.id),
        }
        reward_factors = {
            "growth": self.growth_potential(candidate),
            "adoption": self.adoption_score(candidate),
            "innovation": self._known_coin("innovation", candidate.id),
            "partnerships": self._known_coin("partnerships", candidate.id),
            "utility": self.utility_score(candidate.description),
            "community": self._known_coin("community", candidate.id),
            "tokenomics": self.tokenomics_score(candidate),
        }

        raw_risk = self._weighted(risk_factors, self.config.risk_weights)
        raw_reward = self._weighted(reward_factors, self.config.reward_weights)
        category = self.categorize(raw_risk, raw_reward, candidate.market_cap)
        risk_score = float(round(raw_risk))
        reward_score = float(round(raw_reward))
        confidence = self.confidence(candidate, volatility_defaulted)

        return RiskRewardResult(
            coin_id=candidate.id,
            name=candidate.name,
            risk_score=_clamp(risk_score),
            reward_score=_clamp(reward_score),
            category=category,
            confidence=confidence,
            explanation=self.explain(candidate.name, risk_score, reward_score, category),
            risk_factors=risk_factors,
            reward_factors=reward_factors,
        )

    @staticmethod
    def _weighted(factors: Mapping[str, float], weights: Mapping[str, float]) -> float:
        return sum(value * weights.get(name, 0.0) for name, value in factors.items())

    def _known_coin(self, factor: str, coin_id: str) -> float:
        for coin_ids, score in self.config.known_coins.get(factor, ()):
            if coin_id in coin_ids:
                return score
        return self.config.known_coin_defaults[factor]

    # --- Risk factors ---

    @staticmethod
    def volatility_risk(prices) -> Tuple[float, bool]:
        """Return (risk, defaulted). Daily return std over the volatility window, x1000, capped."""
        window = INDICATOR_PERIODS["volatility"]
        returns = indicators.daily_returns(list(prices)[-window:])
        if returns.size == 0:
            return VOLATILITY_RISK_DEFAULT, True
        return _clamp(float(returns.std()) * VOLATILITY_RISK_SCALE), False

    @staticmethod
    def market_cap_risk(market_cap: float) -> float:
        if not market_cap or market_cap <= 0:
            return MARKET_CAP_RISK_FLOOR
        return _band(market_cap, MARKET_CAP_RISK_BANDS, MARKET_CAP_RISK_FLOOR)

    @staticmethod
    def liquidity_risk(volume: float, market_cap: float) -> float:
        if not volume or volume <= 0:
            return LIQUIDITY_RISK_NO_VOLUME
        if not market_cap or market_cap <= 0:
            return LIQUIDITY_RISK_NO_CAP
        return _band(volume / market_cap, LIQUIDITY_RISK_BANDS, LIQUIDITY_RISK_FLOOR)

    # --- Reward factors ---

    @staticmethod
    def growth_potential(candidate: Candidate) -> float:
        changes = [
            candidate.price_change_24h or 0.0,
            candidate.price_change_7d or 0.0,
            candidate.price_change_30d or 0.0,
        ]
        momentum = sum(changes) / 3.0
        base = GROWTH_BASE_FLOOR
        for threshold, value in GROWTH_CAP_BANDS:
            if candidate.market_cap > threshold:
                base = value
                break
        return _clamp(base + momentum * GROWTH_MOMENTUM_MULTIPLIER)

    @staticmethod
    def adoption_score(candidate: Candidate) -> float:
        rank_score = max(0.0, 100.0 - candidate.rank) if candidate.rank else ADOPTION_UNRANKED
        volume_score = min(ADOPTION_VOLUME_MAX, max(0.0, candidate.volume_24h) / ADOPTION_VOLUME_DIVISOR)
        return min(100.0, rank_score + volume_score)

    @staticmethod
    def utility_score(description: str) -> float:
        text = (description or "").lower()
        score = UTILITY_BASE
        for keywords, bonus in UTILITY_KEYWORDS:
            if any(k in text for k in keywords):
                score += bonus
        return min(100.0, score)

    @staticmethod
    def tokenomics_score(candidate: Candidate) -> float:
        r = TOKENOMICS_RULES
        score = r["base"]
        max_supply = candidate.max_supply
        circulating = candidate.circulating_supply
        if max_supply and max_supply > 0 and circulating:
            ratio = circulating / max_supply
            if ratio > r["high_circulation"]:
                score += r["high_circulation_delta"]
            if ratio < r["low_circulation"]:
                score += r["low_circulation_delta"]
        if max_supply and max_supply > 0:
            score += r["capped_supply_delta"]
        else:
            score += r["uncapped_supply_delta"]
        return _clamp(score)

    # --- Category, confidence, explanation ---

    def categorize(self, risk_score: float, reward_score: float, market_cap: float) -> RiskCategory:
        c = self.config.category
        if risk_score >= c["quarantine_risk"] or (
            risk_score >= c["quarantine_risk_weak"] and reward_score <= c["quarantine_reward_weak"]
        ):
            return RiskCategory.QUARANTINE
        if risk_score <= c["core_risk_max"] and market_cap > c["core_min_market_cap"]:
            return RiskCategory.CORE
        if reward_score >= c["high_risk_reward_min"] and risk_score >= c["high_risk_risk_min"]:
            return RiskCategory.HIGH_RISK
        return RiskCategory.MEDIUM

    def confidence(self, candidate: Candidate, volatility_defaulted: bool) -> float:
        p = self.config.confidence_penalties
        confidence = 100.0
        if not candidate.market_cap:
            confidence -= p["no_market_cap"]
        if not candidate.volume_24h:
            confidence -= p["no_volume"]
        if not candidate.description:
            confidence -= p["no_description"]
        if not candidate.rank:
            confidence -= p["no_rank"]
        if volatility_defaulted:
            confidence -= p["default_volatility"]
        return max(0.0, confidence)

    @staticmethod
    def explain(name: str, risk_score: float, reward_score: float, category: RiskCategory) -> str:
        return (
            f"{name} has {_level(risk_score)} risk ({risk_score:.0f}/100) and "
            f"{_level(reward_score)} reward potential ({reward_score:.0f}/100). "
            f"{CATEGORY_SENTENCES[category]}"
        )


def evaluate_risk_reward(candidate: Candidate, config: Optional[RiskModelConfig] = None) -> RiskRewardResult:
    return RiskRewardEvaluator(config).evaluate(candidate)
