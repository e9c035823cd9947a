"""
Risk profile presets and policy resolution.

A RiskProfile is a fixed preset (Conservative / Balanced / Aggressive).
``resolve_policy`` merges a preset with the user's overrides into the
Policy that drives candidate filtering and allocation composition.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from coin_scout.contracts import Policy
from coin_scout.exceptions import PolicyError
from coin_scout.interfaces import Bucket, RiskTolerance

logger = logging.getLogger(__name__)

MIN_CORE_PCT = 0.30
REBALANCE_CADENCES = ("Quarterly", "Semiannual", "Annual")
DRAWDOWN_COMFORT_LEVELS = (0.15, 0.30, 0.50)


@dataclass(frozen=True)
class RiskProfile:
    name: RiskTolerance
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


RISK_PROFILES: Dict[RiskTolerance, RiskProfile] = {
    RiskTolerance.CONSERVATIVE: RiskProfile(
        name=RiskTolerance.CONSERVATIVE,
        core_target_pct=0.75,
        btc_target_pct=0.50,
        eth_target_pct=0.25,
        stable_buffer_pct=0.15,
        satellite_target_pct=0.10,
        bucket_caps={Bucket.HIGH: 0.00, Bucket.MEDIUM: 0.60, Bucket.LOW: 1.0},
        per_asset_cap_pct=0.25,
        per_category_cap_pct=0.35,
        holdings_target_range=(6, 10),
        liquidity_rank_ceiling=100,
    ),
    RiskTolerance.BALANCED: RiskProfile(
        name=RiskTolerance.BALANCED,
        core_target_pct=0.55,
        btc_target_pct=0.35,
        eth_target_pct=0.20,
        stable_buffer_pct=0.05,
        satellite_target_pct=0.40,
        bucket_caps={Bucket.HIGH: 0.15, Bucket.MEDIUM: 0.60, Bucket.LOW: 1.0},
        per_asset_cap_pct=0.15,
        per_category_cap_pct=0.40,
        holdings_target_range=(8, 12),
        liquidity_rank_ceiling=200,
    ),
    RiskTolerance.AGGRESSIVE: RiskProfile(
        name=RiskTolerance.AGGRESSIVE,
        core_target_pct=0.40,
        btc_target_pct=0.24,
        eth_target_pct=0.16,
        stable_buffer_pct=0.05,
        satellite_target_pct=0.55,
        bucket_caps={Bucket.HIGH: 0.30, Bucket.MEDIUM: 0.60, Bucket.LOW: 1.0},
        per_asset_cap_pct=0.12,
        per_category_cap_pct=0.45,
        holdings_target_range=(10, 16),
        liquidity_rank_ceiling=300,
    ),
}


@dataclass(frozen=True)
class IntakePreferences:
    """User questionnaire answers. Percentages are fractions in [0, 1]."""
    risk_tolerance: RiskTolerance = RiskTolerance.BALANCED
    experience: str = "Beginner"
    horizon: str = "Long"
    max_drawdown_comfort: float = 0.30
    monthly_contribution_usd: float = 0.0
    initial_lump_sum_usd: float = 0.0
    excluded_coin_ids: Tuple[str, ...] = field(default_factory=tuple)
    min_market_cap_usd: float = 0.0
    min_volume_to_mcap: float = 0.0
    holdings_range: Optional[Tuple[int, int]] = None
    rebalance: str = "Quarterly"
    stablecoin_buffer_pct: float = 0.0

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "risk_tolerance", RiskTolerance.parse(self.risk_tolerance))
        except ValueError as exc:
            raise PolicyError("risk_tolerance", str(exc)) from exc
        object.__setattr__(self, "max_drawdown_comfort", _check_drawdown_comfort(self.max_drawdown_comfort))
        object.__setattr__(self, "excluded_coin_ids", tuple(self.excluded_coin_ids or ()))
        if self.holdings_range is not None:
            object.__setattr__(self, "holdings_range", (int(self.holdings_range[0]), int(self.holdings_range[1])))


def _check_drawdown_comfort(value) -> float:
    comfort = _check_fraction("max_drawdown_comfort", value)
    for level in DRAWDOWN_COMFORT_LEVELS:
        if math.isclose(comfort, level, abs_tol=1e-9):
            return level
    raise PolicyError("max_drawdown_comfort", f"expected one of {DRAWDOWN_COMFORT_LEVELS}, got {comfort}")


def get_risk_profile(tolerance) -> RiskProfile:
    try:
        return RISK_PROFILES[RiskTolerance.parse(tolerance)]
    except ValueError as exc:
        raise PolicyError("risk_tolerance", str(exc)) from exc


def _check_fraction(setting: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise PolicyError(setting, f"not a number: {value!r}")
    if not 0.0 <= value <= 1.0:
        raise PolicyError(setting, f"must be within [0, 1], got {value}")
    return value


def resolve_policy(
    risk_tolerance,
    stable_buffer_override: float = 0.0,
    holdings_range: Optional[Tuple[int, int]] = None,
    rebalance: str = "Quarterly",
) -> Policy:
    """Merge a preset with overrides.

    stable = max(override, preset stable); core = max(0.30, preset core - stable);
    satellite = 1 - core - stable; BTC/ETH targets keep their share of core.
    """
    profile = get_risk_profile(risk_tolerance)
    override = _check_fraction("stable_buffer_pct", stable_buffer_override or 0.0)

    stable = max(override, profile.stable_buffer_pct)
    core = max(MIN_CORE_PCT, profile.core_target_pct - stable)
    satellite = 1.0 - core - stable
    if satellite < -1e-9:
        raise PolicyError(
            "stable_buffer_pct",
            f"buffer {stable:.2f} leaves no room for the {core:.2f} core allocation",
        )
    satellite = max(0.0, satellite)
    core_scale = core / profile.core_target_pct

    if holdings_range is None:
        holdings = profile.holdings_target_range
    else:
        holdings = (int(holdings_range[0]), int(holdings_range[1]))
        if holdings[0] < 1 or holdings[1] < holdings[0]:
            raise PolicyError("holdings_range", f"invalid range {holdings}")

    if rebalance not in REBALANCE_CADENCES:
        raise PolicyError("rebalance", f"expected one of {REBALANCE_CADENCES}, got {rebalance!r}")

    policy = Policy(
        risk_tolerance=profile.name,
        core_target_pct=core,
        btc_target_pct=profile.btc_target_pct * core_scale,
        eth_target_pct=profile.eth_target_pct * core_scale,
        stable_buffer_pct=stable,
        satellite_target_pct=satellite,
        bucket_caps=dict(profile.bucket_caps),
        per_asset_cap_pct=profile.per_asset_cap_pct,
        per_category_cap_pct=profile.per_category_cap_pct,
        holdings_target_range=holdings,
        liquidity_rank_ceiling=profile.liquidity_rank_ceiling,
        rebalance=rebalance,
    )
    logger.debug(
        f"Resolved {profile.name.value} policy: core={core:.3f} stable={stable:.3f} satellite={satellite:.3f}"
    )
    return policy


def resolve_policy_from_intake(intake: IntakePreferences) -> Policy:
    return resolve_policy(
        intake.risk_tolerance,
        stable_buffer_override=intake.stablecoin_buffer_pct,
        holdings_range=intake.holdings_range,
        rebalance=intake.rebalance,
    )
