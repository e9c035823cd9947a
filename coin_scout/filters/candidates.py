"""Candidate screening for satellite selection.

Keeps the ranked order and drops any candidate that fails a liquidity,
rank-ceiling, exclusion, reserved-role or zero-bucket-cap check.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from coin_scout.asset_roles import DEFAULT_ASSET_ROLES, AssetRoleTable
from coin_scout.contracts import CoinScore, Policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterCriteria:
    min_market_cap_usd: float = 0.0
    min_volume_to_mcap: float = 0.0
    excluded_coin_ids: Tuple[str, ...] = field(default_factory=tuple)


def rejection_reason(
    score: CoinScore,
    position: int,
    policy: Policy,
    criteria: FilterCriteria,
    roles: AssetRoleTable = DEFAULT_ASSET_ROLES,
) -> Optional[str]:
    """Return why ``score`` is dropped, or None to keep it.

    ``position`` is the 1-based index in the ranked list; the provider's
    market-cap rank takes precedence when known.
    """
    market = score.market
    if market.market_cap < criteria.min_market_cap_usd:
        return "market_cap"
    if market.volume_to_market_cap < criteria.min_volume_to_mcap:
        return "liquidity"
    rank = score.rank if score.rank else position
    if rank > policy.liquidity_rank_ceiling:
        return "rank_ceiling"
    if score.coin_id in criteria.excluded_coin_ids:
        return "excluded"
    if roles.is_reserved(score.coin_id):
        return "reserved_role"
    if policy.bucket_cap(score.bucket) <= 0:
        return "bucket_capped"
    return None


def filter_candidates(
    ranked: Sequence[CoinScore],
    policy: Policy,
    criteria: Optional[FilterCriteria] = None,
    roles: AssetRoleTable = DEFAULT_ASSET_ROLES,
) -> List[CoinScore]:
    """Screen a ranked list, preserving order."""
    criteria = criteria or FilterCriteria()
    kept: List[CoinScore] = []
    dropped: Counter = Counter()
    for position, score in enumerate(ranked, start=1):
        reason = rejection_reason(score, position, policy, criteria, roles)
        if reason is None:
            kept.append(score)
        else:
            dropped[reason] += 1
    if dropped:
        summary = ", ".join(f"{k}={v}" for k, v in sorted(dropped.items()))
        logger.info(f"Candidate filter kept {len(kept)}/{len(ranked)} (dropped: {summary})")
    return kept


def drop_summary(
    ranked: Sequence[CoinScore],
    policy: Policy,
    criteria: Optional[FilterCriteria] = None,
    roles: AssetRoleTable = DEFAULT_ASSET_ROLES,
) -> Dict[str, int]:
    criteria = criteria or FilterCriteria()
    counts: Counter = Counter()
    for position, score in enumerate(ranked, start=1):
        counts[rejection_reason(score, position, policy, criteria, roles) or "kept"] += 1
    return dict(counts)
