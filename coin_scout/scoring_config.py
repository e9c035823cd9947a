"""Centralized scoring configuration for Coin Scout.

All weights, thresholds, and scoring deltas live here so that the
multi-factor scorer, the risk/reward evaluator and the candidate filter
share a single source of truth. Bump SCORING_CONFIG_VERSION whenever a
number changes; the version is stamped on every serialized score.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Tuple

SCORING_CONFIG_VERSION = "2025.1"

# Component weights for the multi-factor total (sum to 1.0)
COMPONENT_WEIGHTS: Dict[str, float] = {
    "technical": 0.30,
    "momentum": 0.25,
    "volume": 0.15,
    "volatility": 0.15,
    "fundamental": 0.15,
}

# Indicator windows
INDICATOR_PERIODS: Dict[str, int] = {
    "rsi": 14,
    "ema_fast": 12,
    "ema_slow": 26,
    "sma_short": 20,
    "sma_long": 50,
    "bollinger": 20,
    "atr": 14,
    "momentum": 10,
    "volatility": 30,
}

MACD_SIGNAL_FACTOR = 0.9
BOLLINGER_STD = 2.0
RISK_FREE_RATE_ANNUAL = 0.02
TRADING_DAYS_PER_YEAR = 365
BETA_MARKET_VOLATILITY = 20.0
VAR_CONFIDENCE = 0.95
MIN_HISTORY_POINTS = 30

# --- Multi-factor deltas ------------------------------------------------------
# Every component starts at SCORE_BASE, accumulates deltas, then is clamped.
SCORE_BASE = 50.0

TECHNICAL_RULES = {
    "rsi_oversold": 30.0,
    "rsi_overbought": 70.0,
    "rsi_oversold_delta": 15.0,
    "rsi_overbought_delta": -15.0,
    "rsi_neutral_delta": 5.0,
    "macd_positive_delta": 10.0,
    "macd_negative_delta": -10.0,
    "above_sma_short_delta": 10.0,
    "above_sma_long_delta": 10.0,
    "bollinger_low": 0.2,
    "bollinger_high": 0.8,
    "bollinger_low_delta": 10.0,
    "bollinger_high_delta": -10.0,
    "volume_ratio_high": 1.5,
    "volume_ratio_low": 0.5,
    "volume_ratio_high_delta": 10.0,
    "volume_ratio_low_delta": -10.0,
}

MOMENTUM_RULES = {
    "strong": 10.0,
    "weak": -10.0,
    "strong_delta": 20.0,
    "positive_delta": 10.0,
    "weak_delta": -20.0,
    "negative_delta": -10.0,
    "trend_strength": 5.0,
    "trend_strength_delta": 15.0,
    "volume_momentum": 20.0,
    "volume_momentum_delta": 15.0,
}

VOLUME_RULES = {
    "turnover_high": 0.10,
    "turnover_mid": 0.05,
    "turnover_low": 0.01,
    "turnover_high_delta": 20.0,
    "turnover_mid_delta": 10.0,
    "turnover_low_delta": -20.0,
    "recent_window": 7,
    "baseline_window": 30,
    "surge_ratio": 1.5,
    "drop_ratio": 0.5,
    "surge_delta": 20.0,
    "rising_delta": 10.0,
    "drop_delta": -20.0,
}

VOLATILITY_RULES = {
    "calm": 30.0,
    "moderate": 50.0,
    "elevated": 70.0,
    "extreme": 100.0,
    "calm_delta": 20.0,
    "moderate_delta": 10.0,
    "elevated_delta": -10.0,
    "extreme_delta": -20.0,
    "sharpe_excellent": 2.0,
    "sharpe_good": 1.0,
    "sharpe_excellent_delta": 20.0,
    "sharpe_good_delta": 10.0,
    "sharpe_negative_delta": -20.0,
    "drawdown_shallow": 20.0,
    "drawdown_deep": 50.0,
    "drawdown_shallow_delta": 10.0,
    "drawdown_deep_delta": -20.0,
}

FUNDAMENTAL_RULES = {
    "sweet_spot_min_cap": 1e9,
    "sweet_spot_max_cap": 100e9,
    "small_cap": 100e6,
    "micro_cap": 10e6,
    "sweet_spot_delta": 20.0,
    "small_cap_delta": 10.0,
    "micro_cap_delta": -20.0,
    "supply_high": 0.7,
    "supply_low": 0.3,
    "supply_high_delta": 10.0,
    "supply_low_delta": -10.0,
    "change_30d_strong": 10.0,
    "change_30d_weak": -20.0,
    "change_30d_strong_delta": 10.0,
    "change_30d_weak_delta": -10.0,
    "ath_far": 70.0,
    "ath_near": 10.0,
    "ath_far_delta": 10.0,
    "ath_near_delta": -10.0,
}

CONFIDENCE_RULES = {
    "base": 50.0,
    "technical_alignment": 20.0,
    "momentum_confirmation": 15.0,
    "risk_quality": 15.0,
    "sharpe_min": 1.0,
    "volatility_max": 50.0,
}

# Volatility buckets (annualized volatility %, upper bounds)
BUCKET_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (30.0, "Low"),
    (70.0, "Medium"),
)

# --- Risk / reward model ------------------------------------------------------

RISK_FACTOR_WEIGHTS: Dict[str, float] = {
    "volatility": 0.25,
    "market_cap": 0.20,
    "liquidity": 0.15,
    "age": 0.10,
    "development": 0.10,
    "centralization": 0.08,
    "regulatory": 0.07,
    "technical": 0.05,
}

REWARD_FACTOR_WEIGHTS: Dict[str, float] = {
    "growth": 0.20,
    "adoption": 0.18,
    "innovation": 0.15,
    "utility": 0.12,
    "partnerships": 0.10,
    "community": 0.10,
    "tokenomics": 0.15,
}

# (min market cap, risk) checked top-down; below the last band -> MARKET_CAP_RISK_FLOOR
MARKET_CAP_RISK_BANDS: Tuple[Tuple[float, float], ...] = (
    (100e9, 5.0),
    (10e9, 15.0),
    (1e9, 30.0),
    (100e6, 50.0),
    (10e6, 70.0),
)
MARKET_CAP_RISK_FLOOR = 90.0

# (min volume/market-cap, risk) checked top-down
LIQUIDITY_RISK_BANDS: Tuple[Tuple[float, float], ...] = (
    (0.10, 10.0),
    (0.05, 20.0),
    (0.02, 35.0),
    (0.01, 50.0),
    (0.005, 70.0),
)
LIQUIDITY_RISK_FLOOR = 90.0
LIQUIDITY_RISK_NO_VOLUME = 95.0
LIQUIDITY_RISK_NO_CAP = 90.0

VOLATILITY_RISK_SCALE = 1000.0
VOLATILITY_RISK_DEFAULT = 50.0

# Known-coin tables: (coin ids, score) checked in order, else default
KNOWN_COIN_FACTORS: Dict[str, Tuple[Tuple[FrozenSet[str], float], ...]] = {
    "age": (
        (frozenset({"bitcoin", "ethereum", "litecoin", "ripple", "bitcoin-cash"}), 10.0),
        (frozenset({"solana", "cardano", "polkadot", "chainlink", "uniswap"}), 40.0),
    ),
    "development": (
        (frozenset({"ethereum", "bitcoin", "cardano", "solana", "polkadot"}), 20.0),
    ),
    "centralization": (
        (frozenset({"bitcoin", "ethereum", "litecoin"}), 15.0),
        (frozenset({"cardano", "solana", "polkadot"}), 40.0),
    ),
    "regulatory": (
        (frozenset({"bitcoin", "ethereum"}), 20.0),
        (frozenset({"monero", "zcash"}), 80.0),
    ),
    "technical": (
        (frozenset({"ethereum", "cardano", "solana", "polkadot"}), 20.0),
    ),
    "innovation": (
        (frozenset({"ethereum", "cardano", "solana", "polkadot", "chainlink"}), 80.0),
        (frozenset({"litecoin", "bitcoin-cash", "stellar"}), 50.0),
    ),
    "partnerships": (
        (frozenset({"ethereum", "cardano", "chainlink", "ripple"}), 70.0),
    ),
    "community": (
        (frozenset({"bitcoin", "ethereum", "cardano", "solana"}), 80.0),
    ),
}

KNOWN_COIN_DEFAULTS: Dict[str, float] = {
    "age": 60.0,
    "development": 60.0,
    "centralization": 70.0,
    "regulatory": 50.0,
    "technical": 50.0,
    "innovation": 30.0,
    "partnerships": 40.0,
    "community": 45.0,
}

# (min market cap, base growth) checked top-down; smaller caps -> GROWTH_BASE_FLOOR
GROWTH_CAP_BANDS: Tuple[Tuple[float, float], ...] = (
    (10e9, 30.0),
    (1e9, 50.0),
    (100e6, 70.0),
)
GROWTH_BASE_FLOOR = 85.0
GROWTH_MOMENTUM_MULTIPLIER = 2.0

ADOPTION_UNRANKED = 20.0
ADOPTION_VOLUME_DIVISOR = 1e6
ADOPTION_VOLUME_MAX = 50.0

UTILITY_BASE = 30.0
# (keywords, bonus): any keyword found in the lowercased description adds the bonus once
UTILITY_KEYWORDS: Tuple[Tuple[Tuple[str, ...], float], ...] = (
    (("smart contract",), 20.0),
    (("defi", "decentralized finance"), 15.0),
    (("payment", "currency"), 10.0),
    (("oracle", "data"), 15.0),
    (("governance",), 10.0),
)

TOKENOMICS_RULES = {
    "base": 50.0,
    "high_circulation": 0.8,
    "low_circulation": 0.3,
    "high_circulation_delta": 10.0,
    "low_circulation_delta": -10.0,
    "capped_supply_delta": 15.0,
    "uncapped_supply_delta": -10.0,
}

CATEGORY_RULES = {
    "quarantine_risk": 80.0,
    "quarantine_risk_weak": 60.0,
    "quarantine_reward_weak": 20.0,
    "core_risk_max": 30.0,
    "core_min_market_cap": 10e9,
    "high_risk_reward_min": 70.0,
    "high_risk_risk_min": 50.0,
}

RISK_CONFIDENCE_PENALTIES = {
    "no_market_cap": 20.0,
    "no_volume": 15.0,
    "no_description": 10.0,
    "no_rank": 10.0,
    "default_volatility": 15.0,
}

# Score bands used in explanations: <= low -> "low", <= medium -> "medium", else "high"
EXPLANATION_BANDS = {"low": 30.0, "medium": 60.0}


@dataclass(frozen=True)
class ScoringConfig:
    """Single named, versioned bundle of every scoring constant."""
    version: str = SCORING_CONFIG_VERSION
    component_weights: Mapping[str, float] = field(default_factory=lambda: dict(COMPONENT_WEIGHTS))
    periods: Mapping[str, int] = field(default_factory=lambda: dict(INDICATOR_PERIODS))
    score_base: float = SCORE_BASE
    technical: Mapping[str, float] = field(default_factory=lambda: dict(TECHNICAL_RULES))
    momentum: Mapping[str, float] = field(default_factory=lambda: dict(MOMENTUM_RULES))
    volume: Mapping[str, float] = field(default_factory=lambda: dict(VOLUME_RULES))
    volatility: Mapping[str, float] = field(default_factory=lambda: dict(VOLATILITY_RULES))
    fundamental: Mapping[str, float] = field(default_factory=lambda: dict(FUNDAMENTAL_RULES))
    confidence: Mapping[str, float] = field(default_factory=lambda: dict(CONFIDENCE_RULES))
    bucket_thresholds: Tuple[Tuple[float, str], ...] = BUCKET_THRESHOLDS
    min_history_points: int = MIN_HISTORY_POINTS

    def validate(self) -> None:
        total = sum(self.component_weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Component weights must sum to 1.0, got {total:.4f}")


@dataclass(frozen=True)
class RiskModelConfig:
    """Constants for the independent risk/reward evaluator."""
    version: str = SCORING_CONFIG_VERSION
    risk_weights: Mapping[str, float] = field(default_factory=lambda: dict(RISK_FACTOR_WEIGHTS))
    reward_weights: Mapping[str, float] = field(default_factory=lambda: dict(REWARD_FACTOR_WEIGHTS))
    known_coins: Mapping[str, Tuple[Tuple[FrozenSet[str], float], ...]] = field(
        default_factory=lambda: dict(KNOWN_COIN_FACTORS)
    )
    known_coin_defaults: Mapping[str, float] = field(default_factory=lambda: dict(KNOWN_COIN_DEFAULTS))
    category: Mapping[str, float] = field(default_factory=lambda: dict(CATEGORY_RULES))
    confidence_penalties: Mapping[str, float] = field(default_factory=lambda: dict(RISK_CONFIDENCE_PENALTIES))


DEFAULT_SCORING_CONFIG = ScoringConfig()
DEFAULT_RISK_MODEL_CONFIG = RiskModelConfig()


def get_scoring_config() -> ScoringConfig:
    """Return the default scoring configuration."""
    return DEFAULT_SCORING_CONFIG


def bucket_for_volatility(volatility_pct: float, thresholds: Tuple[Tuple[float, str], ...] = BUCKET_THRESHOLDS) -> str:
    """Map annualized volatility (%) to a Low/Medium/High bucket label."""
    for upper, label in thresholds:
        if volatility_pct < upper:
            return label
    return "High"
