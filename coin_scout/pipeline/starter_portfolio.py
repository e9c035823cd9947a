"""
Starter portfolio generation.

Pipeline: resolve policy -> rank universe -> filter candidates -> select
satellites (advisory or fallback) -> compose -> split contributions ->
guardrails and checklist.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from coin_scout.advisory import AdvisoryClient, ChatAdvisoryClient
from coin_scout.asset_roles import DEFAULT_ASSET_ROLES, AssetRoleTable
from coin_scout.config import Config, get_config
from coin_scout.contracts import AllocationItem, CoinScore, Guardrails, PortfolioResult
from coin_scout.contributions import allocate_contributions
from coin_scout.filters.candidates import FilterCriteria, filter_candidates
from coin_scout.interfaces import Role
from coin_scout.pipeline.fallback_tracking import record_advisory_fallback, reset_fallback_state
from coin_scout.pipeline.ranking import MarketDataProvider, rank_coins
from coin_scout.policy import IntakePreferences, resolve_policy_from_intake
from coin_scout.portfolio import compose_allocation, select_satellites

logger = logging.getLogger(__name__)

PORTFOLIO_NOTES = "This is an educational starter allocation derived from app data. Not financial advice."
REBALANCE_THRESHOLD_PCT = 0.05
EXCLUDE_FLAGS = ("Regulatory", "Exploit", "Quarantine")
_REVIEW_WORDING = {"Quarterly": "quarterly", "Semiannual": "semiannually", "Annual": "annually"}


def build_guardrails(intake: IntakePreferences) -> Guardrails:
    return Guardrails(
        max_drawdown_alert_pct=intake.max_drawdown_comfort,
        rebalance_threshold_pct=REBALANCE_THRESHOLD_PCT,
        min_liquidity_vol_to_mcap=intake.min_volume_to_mcap,
        exclude_flags=EXCLUDE_FLAGS,
    )


def build_checklist(items: Sequence[AllocationItem], rebalance: str = "Quarterly") -> List[str]:
    core = ", ".join(i.symbol for i in items if i.role == Role.CORE)
    satellites = sorted((i for i in items if i.role == Role.SATELLITE), key=lambda i: (-i.allocation_pct, i.coin_id))
    top = ", ".join(i.symbol for i in satellites[:2])
    return [
        f"Enable price alerts for core holdings: {core}",
        "Set up DCA autopay 2-3 days after income",
        f"Track performance of top satellites: {top}",
        f"Review allocation {_REVIEW_WORDING.get(rebalance, 'quarterly')} for rebalancing needs",
        "Reassess risk tolerance after any major drawdown",
    ]


def _default_advisory(config: Config) -> Optional[AdvisoryClient]:
    if not config.has_advisory_key():
        logger.info("Advisory key not configured; satellites will use the deterministic selector")
        return None
    return ChatAdvisoryClient(config)


def generate_starter_portfolio(
    intake: IntakePreferences,
    provider: Optional[MarketDataProvider] = None,
    ranked: Optional[Sequence[CoinScore]] = None,
    advisory: Optional[AdvisoryClient] = None,
    use_advisory: bool = True,
    config: Optional[Config] = None,
    roles: AssetRoleTable = DEFAULT_ASSET_ROLES,
) -> PortfolioResult:
    """Build a starter portfolio for the intake answers.

    Either ``ranked`` (pre-scored candidates) or ``provider`` must be given.
    """
    config = config or get_config()
    reset_fallback_state()

    policy = resolve_policy_from_intake(intake)

    if ranked is None:
        if provider is None:
            raise ValueError("generate_starter_portfolio needs either ranked scores or a provider")
        ranked = rank_coins(provider, limit=config.portfolio_rank_limit, config=config).scores

    criteria = FilterCriteria(
        min_market_cap_usd=intake.min_market_cap_usd,
        min_volume_to_mcap=intake.min_volume_to_mcap,
        excluded_coin_ids=intake.excluded_coin_ids,
    )
    candidates = filter_candidates(ranked, policy, criteria, roles)

    if use_advisory and advisory is None:
        advisory = _default_advisory(config)
    selection = select_satellites(
        candidates,
        policy,
        advisory if use_advisory else None,
        timeout_sec=config.advisory_timeout_sec,
        context={"experience": intake.experience, "horizon": intake.horizon},
    )
    if selection.used_fallback:
        record_advisory_fallback(selection.reason)

    composition = compose_allocation(policy, selection.items, roles)
    items = allocate_contributions(composition.items, intake.monthly_contribution_usd)

    logger.info(
        f"Starter portfolio ({policy.risk_tolerance.value}): {len(items)} holdings, "
        f"fallback={'yes' if selection.used_fallback else 'no'}"
    )
    return PortfolioResult(
        policy=policy,
        allocation=tuple(items),
        guardrails=build_guardrails(intake),
        checklist=tuple(build_checklist(items, policy.rebalance)),
        notes=PORTFOLIO_NOTES,
        warnings=composition.warnings,
        used_fallback=selection.used_fallback,
    )
