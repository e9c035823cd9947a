"""
Unified Allocation Module

This module aggregates policy resolution, portfolio composition and
contribution splitting.
"""

# ============================================================================
# POLICY (from coin_scout.policy)
# ============================================================================
from coin_scout.policy import (
    RISK_PROFILES,
    IntakePreferences,
    RiskProfile,
    resolve_policy,
    resolve_policy_from_intake,
)

# ============================================================================
# COMPOSITION (from coin_scout.portfolio)
# ============================================================================
from coin_scout.portfolio import (
    Composition,
    SatelliteSelection,
    apply_satellite_caps,
    compose_allocation,
    core_rows,
    fallback_satellites,
    select_satellites,
)

# ============================================================================
# CONTRIBUTIONS (from coin_scout.contributions)
# ============================================================================
from coin_scout.contributions import (
    allocate_contributions,
    contribution_amount,
)

# ============================================================================
# PUBLIC API
# ============================================================================

__all__ = [
    "RISK_PROFILES",
    "IntakePreferences",
    "RiskProfile",
    "resolve_policy",
    "resolve_policy_from_intake",
    "Composition",
    "SatelliteSelection",
    "apply_satellite_caps",
    "compose_allocation",
    "core_rows",
    "fallback_satellites",
    "select_satellites",
    "allocate_contributions",
    "contribution_amount",
]
