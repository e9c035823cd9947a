"""
Portfolio composition.

Builds a starter allocation from a resolved Policy: fixed core rows
(BTC, ETH, optional stablecoin buffer) plus satellites proposed by the
advisory plug-in or by the deterministic fallback. Satellites are capped
per asset and per volatility bucket, trimmed to the holdings budget, and
the whole allocation is normalized to sum to 1.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from coin_scout.advisory import MAX_PROMPT_CANDIDATES, AdvisoryClient, parse_advisory_response
from coin_scout.asset_roles import DEFAULT_ASSET_ROLES, AssetRole, AssetRoleTable
from coin_scout.contracts import AllocationItem, CoinScore, Policy
from coin_scout.exceptions import AdvisoryError, AllocationInvariantError
from coin_scout.interfaces import Bucket, Role

logger = logging.getLogger(__name__)

ALLOCATION_TOLERANCE = 0.01
FALLBACK_RISKS = ("Market volatility", "Project execution risk")
_EPS = 1e-12


@dataclass(frozen=True)
class Composition:
    items: Tuple[AllocationItem, ...]
    warnings: Tuple[str, ...] = ()

    @property
    def total(self) -> float:
        return float(sum(i.allocation_pct for i in self.items))


@dataclass(frozen=True)
class SatelliteSelection:
    items: Tuple[AllocationItem, ...]
    used_fallback: bool
    reason: str = ""


# ---------------------------------------------------------------------------
# Core rows
# ---------------------------------------------------------------------------


def _row(role: AssetRole, pct: float) -> AllocationItem:
    return AllocationItem(
        coin_id=role.coin_id,
        symbol=role.symbol,
        name=role.name,
        role=role.role,
        bucket=role.bucket,
        allocation_pct=float(pct),
        reasons=role.reasons,
        risks=role.risks,
    )


def core_rows(policy: Policy, roles: AssetRoleTable = DEFAULT_ASSET_ROLES) -> List[AllocationItem]:
    """BTC and ETH at their targets, plus the stable row when the buffer is non-zero."""
    rows = [_row(roles.btc, policy.btc_target_pct), _row(roles.eth, policy.eth_target_pct)]
    if policy.stable_buffer_pct > 0:
        rows.append(_row(roles.stable, policy.stable_buffer_pct))
    return rows


# ---------------------------------------------------------------------------
# Satellite capping
# ---------------------------------------------------------------------------


def _bucket_totals(items: Sequence[AllocationItem]) -> Dict[Bucket, float]:
    totals: Dict[Bucket, float] = {b: 0.0 for b in Bucket}
    for item in items:
        totals[item.bucket] += item.allocation_pct
    return totals


def apply_satellite_caps(satellites: Sequence[AllocationItem], policy: Policy) -> List[AllocationItem]:
    """Per-asset clamp, proportional bucket scale-down, sort by weight, truncate."""
    capped = [
        replace(s, allocation_pct=min(max(0.0, s.allocation_pct), policy.per_asset_cap_pct))
        for s in satellites
    ]

    totals = _bucket_totals(capped)
    scales = {
        bucket: (policy.bucket_cap(bucket) / total if total > policy.bucket_cap(bucket) else 1.0)
        for bucket, total in totals.items()
        if total > 0
    }
    capped = [replace(s, allocation_pct=s.allocation_pct * scales.get(s.bucket, 1.0)) for s in capped]
    capped = [s for s in capped if s.allocation_pct > _EPS]

    capped.sort(key=lambda s: (-s.allocation_pct, s.coin_id))
    return capped[: policy.max_satellites]


def _reenforce_caps(items: List[AllocationItem], policy: Policy) -> List[AllocationItem]:
    """Re-clamp satellites after normalization; freed weight goes to core/stable rows pro-rata."""
    freed = 0.0
    out: List[AllocationItem] = []
    for item in items:
        if item.role == Role.SATELLITE and item.allocation_pct > policy.per_asset_cap_pct + _EPS:
            freed += item.allocation_pct - policy.per_asset_cap_pct
            item = replace(item, allocation_pct=policy.per_asset_cap_pct)
        out.append(item)

    totals = _bucket_totals([i for i in out if i.role == Role.SATELLITE])
    for bucket, total in totals.items():
        cap = policy.bucket_cap(bucket)
        if total > cap + _EPS:
            scale = cap / total
            freed += total - cap
            out = [
                replace(i, allocation_pct=i.allocation_pct * scale)
                if i.role == Role.SATELLITE and i.bucket == bucket else i
                for i in out
            ]

    if freed <= _EPS:
        return out
    anchor_total = sum(i.allocation_pct for i in out if i.role != Role.SATELLITE)
    if anchor_total <= 0:
        return out
    logger.debug(f"Redistributing {freed:.4f} freed satellite weight to core rows")
    return [
        replace(i, allocation_pct=i.allocation_pct + freed * i.allocation_pct / anchor_total)
        if i.role != Role.SATELLITE else i
        for i in out
    ]


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def compose_allocation(
    policy: Policy,
    satellites: Sequence[AllocationItem] = (),
    roles: AssetRoleTable = DEFAULT_ASSET_ROLES,
    tolerance: float = ALLOCATION_TOLERANCE,
) -> Composition:
    """Compose core rows and satellites into a normalized allocation.

    Raises:
        AllocationInvariantError: the final total is outside 1 ± tolerance.
    """
    satellites = [replace(s, role=Role.SATELLITE) for s in satellites if not roles.is_reserved(s.coin_id)]
    items = core_rows(policy, roles) + apply_satellite_caps(satellites, policy)

    total = sum(i.allocation_pct for i in items)
    if total <= 0:
        raise AllocationInvariantError(total, tolerance)
    if abs(total - 1.0) > tolerance:
        factor = 1.0 / total
        items = [replace(i, allocation_pct=i.allocation_pct * factor) for i in items]
        items = _reenforce_caps(items, policy)

    final_total = sum(i.allocation_pct for i in items)
    if abs(final_total - 1.0) > tolerance:
        raise AllocationInvariantError(final_total, tolerance)

    warnings: List[str] = []
    low, high = policy.holdings_target_range
    if len(items) < low:
        warnings.append(f"Portfolio has {len(items)} holdings, below minimum {low}")
    elif len(items) > high:
        warnings.append(f"Portfolio has {len(items)} holdings, above maximum {high}")
    for message in warnings:
        logger.warning(message)

    return Composition(items=tuple(items), warnings=tuple(warnings))


# ---------------------------------------------------------------------------
# Satellite selection
# ---------------------------------------------------------------------------


def fallback_satellites(candidates: Sequence[CoinScore], policy: Policy) -> List[AllocationItem]:
    """Deterministic satellites: equal slices of the satellite target in rank order.

    Each pick gets min(target per satellite, per-asset cap, remaining bucket room).
    """
    max_satellites = policy.max_satellites
    if max_satellites <= 0 or policy.satellite_target_pct <= 0:
        return []
    target = policy.satellite_target_pct / max_satellites
    used: Dict[Bucket, float] = {b: 0.0 for b in Bucket}
    picks: List[AllocationItem] = []

    for score in candidates:
        if len(picks) >= max_satellites:
            break
        bucket = score.bucket
        room = policy.bucket_cap(bucket) - used[bucket]
        if room <= _EPS:
            continue
        pct = min(target, policy.per_asset_cap_pct, room)
        picks.append(AllocationItem(
            coin_id=score.coin_id,
            symbol=score.symbol,
            name=score.name,
            role=Role.SATELLITE,
            bucket=bucket,
            allocation_pct=pct,
            reasons=(f"Score: {score.total_score:.1f}", f"Trend: {score.trend.value}"),
            risks=FALLBACK_RISKS,
        ))
        used[bucket] += pct
    return picks


def select_satellites(
    candidates: Sequence[CoinScore],
    policy: Policy,
    advisory: Optional[AdvisoryClient] = None,
    timeout_sec: float = 30.0,
    context: Optional[Mapping[str, Any]] = None,
) -> SatelliteSelection:
    """Ask the advisory plug-in once; any failure switches to the fallback in full."""
    if not candidates or policy.max_satellites <= 0:
        return SatelliteSelection(items=(), used_fallback=False, reason="no candidates")
    if advisory is None:
        return SatelliteSelection(
            items=tuple(fallback_satellites(candidates, policy)), used_fallback=True, reason="advisory disabled"
        )

    shortlist = list(candidates[:MAX_PROMPT_CANDIDATES])
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(advisory.propose, shortlist, policy, dict(context or {}))
    reason = ""
    try:
        payload = future.result(timeout=timeout_sec)
        items = parse_advisory_response(payload, shortlist, policy)
        logger.info(f"Advisory proposed {len(items)} satellites")
        return SatelliteSelection(items=tuple(items), used_fallback=False)
    except FuturesTimeout:
        future.cancel()
        reason = f"advisory timed out after {timeout_sec:.0f}s"
    except AdvisoryError as exc:
        reason = str(exc)
    except Exception as exc:
        reason = f"advisory raised {type(exc).__name__}: {exc}"
    finally:
        executor.shutdown(wait=False)

    logger.warning(f"Falling back to deterministic satellites: {reason}")
    return SatelliteSelection(
        items=tuple(fallback_satellites(candidates, policy)), used_fallback=True, reason=reason
    )
