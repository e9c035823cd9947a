"""
Core contracts for scoring and allocation outputs.

These dataclasses define the single source of truth for the
shape of data produced by ranking, risk evaluation and portfolio
composition. No business logic is included beyond trivial derived
properties.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from coin_scout.interfaces import Bucket, RiskCategory, RiskTolerance, Role, Trend
from coin_scout.scoring_config import bucket_for_volatility


# --- Indicator bundles ---

@dataclass(frozen=True)
class TechnicalIndicators:
    rsi: float
    macd: float
    macd_signal: float
    macd_histogram: float
    sma20: float
    sma50: float
    ema12: float
    ema26: float
    bb_upper: float
    bb_middle: float
    bb_lower: float
    bb_width: float
    atr: float
    obv: float
    volume_ratio: float
    last_price: float = 0.0

    @property
    def bollinger_position(self) -> float:
        """Where the last close sits: 0 = lower band, 1 = upper band."""
        span = self.bb_upper - self.bb_lower
        if span <= 0:
            return 0.5
        return (self.last_price - self.bb_lower) / span


@dataclass(frozen=True)
class MomentumIndicators:
    momentum: float
    rate_of_change: float
    price_velocity: float
    trend_strength: float
    volume_momentum: float


@dataclass(frozen=True)
class RiskMetrics:
    """Annualized risk figures, all expressed in percent except sharpe/beta."""
    volatility_30d: float
    sharpe_ratio: float
    max_drawdown: float
    beta: float
    downside_deviation: float
    value_at_risk: float


@dataclass(frozen=True)
class MarketMetrics:
    market_cap: float
    volume_24h: float
    circulating_supply: Optional[float]
    total_supply: Optional[float]
    max_supply: Optional[float]
    current_price: Optional[float]
    price_change_24h: Optional[float]
    price_change_7d: Optional[float]
    price_change_30d: Optional[float]
    ath: Optional[float]

    @property
    def volume_to_market_cap(self) -> float:
        if self.market_cap <= 0:
            return 0.0
        return self.volume_24h / self.market_cap


# --- Scores ---

@dataclass(frozen=True)
class CoinScore:
    """Ranked multi-factor score for one candidate."""
    coin_id: str
    symbol: str
    name: str
    technical_score: float
    momentum_score: float
    volume_score: float
    volatility_score: float
    fundamental_score: float
    total_score: float
    trend: Trend
    signals: Tuple[str, ...]
    confidence: float
    technical: TechnicalIndicators
    momentum: MomentumIndicators
    risk: RiskMetrics
    market: MarketMetrics
    rank: Optional[int] = None
    scoring_version: str = ""

    @property
    def bucket(self) -> Bucket:
        return Bucket(bucket_for_volatility(self.risk.volatility_30d))


@dataclass(frozen=True)
class RiskRewardResult:
    coin_id: str
    name: str
    risk_score: float
    reward_score: float
    category: RiskCategory
    confidence: float
    explanation: str
    risk_factors: Mapping[str, float] = field(default_factory=dict)
    reward_factors: Mapping[str, float] = field(default_factory=dict)


# --- Allocation primitives ---

@dataclass(frozen=True)
class Contribution:
    amount: float
    cadence: str = "Monthly"


@dataclass(frozen=True)
class AllocationItem:
    """One row of a composed portfolio. ``allocation_pct`` is a fraction in [0, 1]."""
    coin_id: str
    symbol: str
    name: str
    role: Role
    bucket: Bucket
    allocation_pct: float
    reasons: Tuple[str, ...] = ()
    risks: Tuple[str, ...] = ()
    contribution: Optional[Contribution] = None


@dataclass(frozen=True)
class Policy:
    """A risk-profile preset merged with the user's overrides."""
    risk_tolerance: RiskTolerance
    core_target_pct: float
    btc_target_pct: float
    eth_target_pct: float
    stable_buffer_pct: float
    satellite_target_pct: float
    bucket_caps: Mapping[Bucket, float]
    per_asset_cap_pct: float
    per_category_cap_pct: float
    holdings_target_range: Tuple[int, int]
    liquidity_rank_ceiling: int
    rebalance: str = "Quarterly"

    @property
    def max_satellites(self) -> int:
        return max(0, self.holdings_target_range[1] - 3)

    def bucket_cap(self, bucket: Bucket) -> float:
        return float(self.bucket_caps.get(Bucket(bucket), 0.0))


@dataclass(frozen=True)
class Guardrails:
    max_drawdown_alert_pct: float
    rebalance_threshold_pct: float
    min_liquidity_vol_to_mcap: float
    exclude_flags: Tuple[str, ...]


@dataclass(frozen=True)
class PortfolioResult:
    policy: Policy
    allocation: Tuple[AllocationItem, ...]
    guardrails: Guardrails
    checklist: Tuple[str, ...]
    notes: str
    warnings: Tuple[str, ...] = ()
    used_fallback: bool = False

    @property
    def total_allocation(self) -> float:
        return float(sum(item.allocation_pct for item in self.allocation))

    def by_role(self, role: Role) -> Tuple[AllocationItem, ...]:
        return tuple(item for item in self.allocation if item.role == role)

    def weights(self) -> Dict[str, float]:
        return {item.coin_id: item.allocation_pct for item in self.allocation}
