"""
MultiFactorScorer - five-component technical/fundamental scoring for crypto assets.

Each component starts at a neutral 50, accumulates fixed deltas from
coin_scout.scoring_config and is clamped to [0, 100]. The weighted total,
trend label, ordered signal list and confidence are derived from the same
indicator bundles.

Usage:
    from coin_scout.scoring import MultiFactorScorer

    scorer = MultiFactorScorer()
    ranked = scorer.rank(candidates)
    print(ranked[0].coin_id, ranked[0].total_score, ranked[0].trend)
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from coin_scout import indicators
from coin_scout.contracts import (
    CoinScore,
    MarketMetrics,
    MomentumIndicators,
    RiskMetrics,
    TechnicalIndicators,
)
from coin_scout.exceptions import InsufficientDataError
from coin_scout.interfaces import Candidate, Trend
from coin_scout.scoring_config import ScoringConfig, get_scoring_config

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if not np.isfinite(value):
        return low
    return float(max(low, min(high, value)))


def market_metrics(candidate: Candidate) -> MarketMetrics:
    """Snapshot the candidate's market fields; 30d change is derived from history when missing."""
    change_30d = candidate.price_change_30d
    if change_30d is None and len(candidate.prices) > 30:
        change_30d = indicators.price_momentum(candidate.prices, 30)
    return MarketMetrics(
        market_cap=candidate.market_cap,
        volume_24h=candidate.volume_24h,
        circulating_supply=candidate.circulating_supply,
        total_supply=candidate.total_supply,
        max_supply=candidate.max_supply,
        current_price=candidate.last_price,
        price_change_24h=candidate.price_change_24h,
        price_change_7d=candidate.price_change_7d,
        price_change_30d=change_30d,
        ath=candidate.ath,
    )


class MultiFactorScorer:
    """Scores candidates on technical, momentum, volume, volatility and fundamental factors."""

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self.config = config or get_scoring_config()
        self.config.validate()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def score(self, candidate: Candidate) -> CoinScore:
        """Score one candidate.

        Raises:
            InsufficientDataError: fewer than ``min_history_points`` prices.
        """
        prices = candidate.prices
        if len(prices) < self.config.min_history_points:
            raise InsufficientDataError(
                coin_id=candidate.id,
                required=self.config.min_history_points,
                actual=len(prices),
            )

        periods = self.config.periods
        technical = indicators.technical_indicators(prices, candidate.volumes, periods)
        momentum = indicators.momentum_indicators(prices, candidate.volumes, periods)
        risk = indicators.risk_metrics(prices, periods)
        market = market_metrics(candidate)
        last_price = float(prices[-1])

        technical_score = self.score_technical(technical, last_price)
        momentum_score = self.score_momentum(momentum)
        volume_score = self.score_volume(market, candidate.volumes)
        volatility_score = self.score_volatility(risk)
        fundamental_score = self.score_fundamental(market)

        weights = self.config.component_weights
        total = (
            technical_score * weights["technical"]
            + momentum_score * weights["momentum"]
            + volume_score * weights["volume"]
            + volatility_score * weights["volatility"]
            + fundamental_score * weights["fundamental"]
        )

        trend, signals = self.generate_signals(technical, momentum, last_price)

        return CoinScore(
            coin_id=candidate.id,
            symbol=candidate.symbol,
            name=candidate.name,
            technical_score=technical_score,
            momentum_score=momentum_score,
            volume_score=volume_score,
            volatility_score=volatility_score,
            fundamental_score=fundamental_score,
            total_score=_clamp(total),
            trend=trend,
            signals=signals,
            confidence=self.calculate_confidence(technical, momentum, risk),
            technical=technical,
            momentum=momentum,
            risk=risk,
            market=market,
            rank=candidate.rank,
            scoring_version=self.config.version,
        )

    def rank(self, candidates: Iterable[Candidate]) -> List[CoinScore]:
        """Score every candidate and sort by total score (descending).

        A candidate that fails to score is logged and left out; the rest of
        the batch is unaffected.
        """
        scores: List[CoinScore] = []
        skipped = 0
        for candidate in candidates:
            try:
                scores.append(self.score(candidate))
            except InsufficientDataError as exc:
                skipped += 1
                logger.info(f"Skipping {candidate.id}: {exc}")
            except Exception as exc:
                skipped += 1
                logger.warning(f"Scoring failed for {candidate.id}: {exc}")
        if skipped:
            logger.info(f"Ranked {len(scores)} candidates ({skipped} skipped)")
        return sort_scores(scores)

    # ------------------------------------------------------------------
    # Component scores
    # ------------------------------------------------------------------

    def score_technical(self, technical: TechnicalIndicators, price: float) -> float:
        r = self.config.technical
        score = self.config.score_base

        if technical.rsi < r["rsi_oversold"]:
            score += r["rsi_oversold_delta"]
        elif technical.rsi > r["rsi_overbought"]:
            score += r["rsi_overbought_delta"]
        else:
            score += r["rsi_neutral_delta"]

        if technical.macd_histogram > 0:
            score += r["macd_positive_delta"]
        else:
            score += r["macd_negative_delta"]

        if price > technical.sma20:
            score += r["above_sma_short_delta"]
        if price > technical.sma50:
            score += r["above_sma_long_delta"]

        position = technical.bollinger_position
        if position < r["bollinger_low"]:
            score += r["bollinger_low_delta"]
        elif position > r["bollinger_high"]:
            score += r["bollinger_high_delta"]

        if technical.volume_ratio > r["volume_ratio_high"]:
            score += r["volume_ratio_high_delta"]
        elif technical.volume_ratio < r["volume_ratio_low"]:
            score += r["volume_ratio_low_delta"]

        return _clamp(score)

    def score_momentum(self, momentum: MomentumIndicators) -> float:
        r = self.config.momentum
        score = self.config.score_base

        if momentum.momentum > r["strong"]:
            score += r["strong_delta"]
        elif momentum.momentum > 0:
            score += r["positive_delta"]
        elif momentum.momentum < r["weak"]:
            score += r["weak_delta"]
        else:
            score += r["negative_delta"]

        if momentum.trend_strength > r["trend_strength"]:
            score += r["trend_strength_delta"]
        elif momentum.trend_strength < -r["trend_strength"]:
            score -= r["trend_strength_delta"]

        if momentum.volume_momentum > r["volume_momentum"]:
            score += r["volume_momentum_delta"]
        elif momentum.volume_momentum < -r["volume_momentum"]:
            score -= r["volume_momentum_delta"]

        return _clamp(score)

    def score_volume(self, market: MarketMetrics, volumes: Sequence[float]) -> float:
        r = self.config.volume
        score = self.config.score_base

        turnover = market.volume_to_market_cap
        if market.market_cap > 0:
            if turnover > r["turnover_high"]:
                score += r["turnover_high_delta"]
            elif turnover > r["turnover_mid"]:
                score += r["turnover_mid_delta"]
            elif turnover < r["turnover_low"]:
                score += r["turnover_low_delta"]

        recent_window = int(r["recent_window"])
        baseline_window = int(r["baseline_window"])
        vols = np.asarray(volumes, dtype=float)
        if vols.size >= baseline_window:
            recent_avg = vols[-recent_window:].mean()
            older_avg = vols[-baseline_window:-recent_window].mean()
            if recent_avg > older_avg * r["surge_ratio"]:
                score += r["surge_delta"]
            elif recent_avg > older_avg:
                score += r["rising_delta"]
            elif recent_avg < older_avg * r["drop_ratio"]:
                score += r["drop_delta"]

        return _clamp(score)

    def score_volatility(self, risk: RiskMetrics) -> float:
        r = self.config.volatility
        score = self.config.score_base

        vol = risk.volatility_30d
        if vol < r["calm"]:
            score += r["calm_delta"]
        elif vol < r["moderate"]:
            score += r["moderate_delta"]
        elif vol > r["extreme"]:
            score += r["extreme_delta"]
        elif vol > r["elevated"]:
            score += r["elevated_delta"]

        if risk.sharpe_ratio > r["sharpe_excellent"]:
            score += r["sharpe_excellent_delta"]
        elif risk.sharpe_ratio > r["sharpe_good"]:
            score += r["sharpe_good_delta"]
        elif risk.sharpe_ratio < 0:
            score += r["sharpe_negative_delta"]

        if risk.max_drawdown < r["drawdown_shallow"]:
            score += r["drawdown_shallow_delta"]
        elif risk.max_drawdown > r["drawdown_deep"]:
            score += r["drawdown_deep_delta"]

        return _clamp(score)

    def score_fundamental(self, market: MarketMetrics) -> float:
        r = self.config.fundamental
        score = self.config.score_base

        cap = market.market_cap
        if r["sweet_spot_min_cap"] < cap < r["sweet_spot_max_cap"]:
            score += r["sweet_spot_delta"]
        elif cap > r["small_cap"]:
            score += r["small_cap_delta"]
        elif cap < r["micro_cap"]:
            score += r["micro_cap_delta"]

        circulating = market.circulating_supply
        if circulating is not None and circulating > 0:
            total = market.total_supply if market.total_supply and market.total_supply > 0 else circulating
            supply_ratio = circulating / total
            if supply_ratio > r["supply_high"]:
                score += r["supply_high_delta"]
            elif supply_ratio < r["supply_low"]:
                score += r["supply_low_delta"]

        change_30d = market.price_change_30d
        if change_30d is not None:
            if change_30d > r["change_30d_strong"]:
                score += r["change_30d_strong_delta"]
            elif change_30d < r["change_30d_weak"]:
                score += r["change_30d_weak_delta"]

        ath, price = market.ath, market.current_price
        if ath is not None and ath > 0 and price is not None and price > 0:
            distance = (ath - price) / ath * 100.0
            if distance > r["ath_far"]:
                score += r["ath_far_delta"]
            elif distance < r["ath_near"]:
                score += r["ath_near_delta"]

        return _clamp(score)

    # ------------------------------------------------------------------
    # Trend, signals, confidence
    # ------------------------------------------------------------------

    def generate_signals(
        self,
        technical: TechnicalIndicators,
        momentum: MomentumIndicators,
        price: float,
    ) -> Tuple[Trend, Tuple[str, ...]]:
        t = self.config.technical
        m = self.config.momentum
        signals: List[str] = []
        bullish = 0
        bearish = 0

        if technical.rsi < t["rsi_oversold"]:
            signals.append("RSI oversold")
            bullish += 1
        elif technical.rsi > t["rsi_overbought"]:
            signals.append("RSI overbought")
            bearish += 1

        if technical.macd_histogram > 0:
            signals.append("MACD bullish")
            bullish += 1
        else:
            signals.append("MACD bearish")
            bearish += 1

        if price > technical.sma50:
            signals.append("Above 50-day SMA")
            bullish += 1
        else:
            signals.append("Below 50-day SMA")
            bearish += 1

        if momentum.momentum > m["strong"]:
            signals.append("Strong momentum")
            bullish += 1
        elif momentum.momentum < m["weak"]:
            signals.append("Weak momentum")
            bearish += 1

        if momentum.volume_momentum > m["volume_momentum"]:
            signals.append("Volume increasing")
            bullish += 1

        if bullish > bearish + 1:
            trend = Trend.BULLISH
        elif bearish > bullish + 1:
            trend = Trend.BEARISH
        else:
            trend = Trend.NEUTRAL
        return trend, tuple(signals)

    def calculate_confidence(
        self,
        technical: TechnicalIndicators,
        momentum: MomentumIndicators,
        risk: RiskMetrics,
    ) -> float:
        c = self.config.confidence
        t = self.config.technical
        confidence = c["base"]

        if technical.macd_histogram > 0 and t["rsi_oversold"] < technical.rsi < t["rsi_overbought"]:
            confidence += c["technical_alignment"]
        if momentum.momentum > 0 and momentum.volume_momentum > 0:
            confidence += c["momentum_confirmation"]
        if risk.sharpe_ratio > c["sharpe_min"] and risk.volatility_30d < c["volatility_max"]:
            confidence += c["risk_quality"]

        return _clamp(confidence)


def sort_scores(scores: Iterable[CoinScore]) -> List[CoinScore]:
    """Order by total score descending; coin id breaks ties so output is deterministic."""
    return sorted(scores, key=lambda s: (-s.total_score, s.coin_id))


def rank_candidates(candidates: Iterable[Candidate], config: Optional[ScoringConfig] = None) -> List[CoinScore]:
    """Convenience wrapper: ``MultiFactorScorer(config).rank(candidates)``."""
    return MultiFactorScorer(config).rank(candidates)
