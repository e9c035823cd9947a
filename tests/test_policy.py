import pytest

from coin_scout.asset_roles import DEFAULT_ASSET_ROLES, AssetRoleTable
from coin_scout.exceptions import PolicyError
from coin_scout.interfaces import Bucket, RiskTolerance, Role
from coin_scout.policy import (
    IntakePreferences,
    RISK_PROFILES,
    get_risk_profile,
    resolve_policy,
    resolve_policy_from_intake,
)


class TestResolvePolicy:
    def test_balanced_defaults(self):
        policy = resolve_policy("Balanced")
        assert policy.stable_buffer_pct == pytest.approx(0.05)
        assert policy.core_target_pct == pytest.approx(0.50)
        assert policy.satellite_target_pct == pytest.approx(0.45)
        assert policy.btc_target_pct == pytest.approx(0.35 * 0.50 / 0.55)
        assert policy.eth_target_pct == pytest.approx(0.20 * 0.50 / 0.55)
        assert policy.max_satellites == 9

    @pytest.mark.parametrize(
        "tolerance,stable,core,satellite",
        [
            ("Conservative", 0.15, 0.60, 0.25),
            ("Balanced", 0.05, 0.50, 0.45),
            ("Aggressive", 0.05, 0.35, 0.60),
        ],
    )
    def test_targets_sum_to_one(self, tolerance, stable, core, satellite):
        policy = resolve_policy(tolerance)
        assert policy.stable_buffer_pct == pytest.approx(stable)
        assert policy.core_target_pct == pytest.approx(core)
        assert policy.satellite_target_pct == pytest.approx(satellite)
        assert policy.core_target_pct + policy.stable_buffer_pct + policy.satellite_target_pct == pytest.approx(1.0)

    def test_btc_and_eth_keep_share_of_core(self):
        policy = resolve_policy("Aggressive")
        assert policy.btc_target_pct + policy.eth_target_pct == pytest.approx(policy.core_target_pct)

    def test_large_stable_override_keeps_core_floor(self):
        policy = resolve_policy("Conservative", stable_buffer_override=0.5)
        assert policy.stable_buffer_pct == pytest.approx(0.50)
        assert policy.core_target_pct == pytest.approx(0.30)
        assert policy.satellite_target_pct == pytest.approx(0.20)

    def test_small_override_does_not_lower_preset_buffer(self):
        policy = resolve_policy("Conservative", stable_buffer_override=0.05)
        assert policy.stable_buffer_pct == pytest.approx(0.15)

    def test_override_leaving_no_room_rejected(self):
        with pytest.raises(PolicyError) as exc_info:
            resolve_policy("Balanced", stable_buffer_override=0.8)
        assert exc_info.value.setting == "stable_buffer_pct"

    def test_override_outside_unit_range_rejected(self):
        with pytest.raises(PolicyError):
            resolve_policy("Balanced", stable_buffer_override=1.5)

    def test_unknown_tolerance_rejected(self):
        with pytest.raises(PolicyError):
            resolve_policy("Reckless")

    def test_inverted_holdings_range_rejected(self):
        with pytest.raises(PolicyError):
            resolve_policy("Balanced", holdings_range=(5, 3))

    def test_holdings_override_drives_max_satellites(self):
        assert resolve_policy("Balanced", holdings_range=(4, 7)).max_satellites == 4
        assert resolve_policy("Balanced", holdings_range=(1, 2)).max_satellites == 0

    def test_unknown_cadence_rejected(self):
        with pytest.raises(PolicyError):
            resolve_policy("Balanced", rebalance="Weekly")

    def test_bucket_caps_copied_from_profile(self):
        policy = resolve_policy("Conservative")
        assert policy.bucket_cap(Bucket.HIGH) == 0.0
        assert policy.bucket_cap("Medium") == pytest.approx(0.60)


class TestProfilesAndIntake:
    def test_profile_lookup_is_case_insensitive(self):
        assert get_risk_profile("aggressive") is RISK_PROFILES[RiskTolerance.AGGRESSIVE]

    def test_intake_parses_tolerance(self):
        intake = IntakePreferences(risk_tolerance="conservative", holdings_range=["4", "8"])
        assert intake.risk_tolerance == RiskTolerance.CONSERVATIVE
        assert intake.holdings_range == (4, 8)

    def test_intake_rejects_unknown_tolerance(self):
        with pytest.raises(PolicyError):
            IntakePreferences(risk_tolerance="yolo")

    @pytest.mark.parametrize("comfort", [0.25, 0.0, 1.5, "half"])
    def test_drawdown_comfort_must_be_a_listed_level(self, comfort):
        with pytest.raises(PolicyError):
            IntakePreferences(max_drawdown_comfort=comfort)

    def test_drawdown_comfort_snaps_to_level(self):
        assert IntakePreferences(max_drawdown_comfort=50 / 100).max_drawdown_comfort == 0.50

    def test_policy_from_intake(self):
        intake = IntakePreferences(
            risk_tolerance="Aggressive", stablecoin_buffer_pct=0.10, rebalance="Annual",
        )
        policy = resolve_policy_from_intake(intake)
        assert policy.stable_buffer_pct == pytest.approx(0.10)
        assert policy.core_target_pct == pytest.approx(0.30)
        assert policy.rebalance == "Annual"


class TestAssetRoles:
    def test_reserved_ids(self):
        assert DEFAULT_ASSET_ROLES.role_of("bitcoin") == Role.CORE
        assert DEFAULT_ASSET_ROLES.role_of("tether") == Role.STABLE
        assert DEFAULT_ASSET_ROLES.is_reserved("usd-coin")
        assert not DEFAULT_ASSET_ROLES.is_reserved("solana")

    def test_extra_roles(self):
        table = AssetRoleTable(extra_roles={"wrapped-bitcoin": Role.CORE})
        assert table.is_reserved("wrapped-bitcoin")
        assert table.role_of("wrapped-bitcoin") == Role.CORE
        assert table.role_of("dai") == Role.STABLE
