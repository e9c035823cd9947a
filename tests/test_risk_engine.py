import pytest

from coin_scout.interfaces import Candidate, RiskCategory
from coin_scout.risk_engine import FAILURE_EXPLANATION, RiskRewardEvaluator, evaluate_risk_reward


@pytest.fixture
def evaluator():
    return RiskRewardEvaluator()


def _bitcoin_like() -> Candidate:
    prices = [100.0 if i % 2 == 0 else 100.1 for i in range(60)]
    return Candidate(
        id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        prices=prices,
        market_cap=1.2e12,
        volume_24h=3e10,
        circulating_supply=19.5e6,
        max_supply=21e6,
        rank=1,
        price_change_24h=1.0,
        price_change_7d=2.0,
        price_change_30d=3.0,
        description="A peer-to-peer electronic cash payment currency.",
    )


class TestEvaluate:
    def test_established_large_cap_is_core(self, evaluator):
        result = evaluator.evaluate(_bitcoin_like())
        assert result.category == RiskCategory.CORE
        assert result.risk_score == 15.0
        assert result.reward_score == 57.0
        assert result.confidence == 100.0
        assert result.explanation.startswith("Bitcoin has low risk (15/100) and medium reward potential (57/100).")
        assert "core holding" in result.explanation

    def test_unknown_coin_without_data(self, evaluator):
        result = evaluator.evaluate(Candidate(id="mystery", symbol="MYS", name="Mystery"))
        assert result.risk_score == 68.0
        assert result.reward_score == 43.0
        assert result.category == RiskCategory.MEDIUM
        # missing cap, volume, description, rank and volatility history
        assert result.confidence == 30.0

    def test_factor_breakdown_is_complete(self, evaluator):
        result = evaluator.evaluate(_bitcoin_like())
        assert set(result.risk_factors) == {
            "volatility", "market_cap", "liquidity", "age",
            "development", "centralization", "regulatory", "technical",
        }
        assert set(result.reward_factors) == {
            "growth", "adoption", "innovation", "partnerships", "utility", "community", "tokenomics",
        }
        for value in list(result.risk_factors.values()) + list(result.reward_factors.values()):
            assert 0.0 <= value <= 100.0

    def test_internal_failure_yields_quarantine(self):
        class Broken(RiskRewardEvaluator):
            @staticmethod
            def growth_potential(candidate):
                raise ZeroDivisionError("boom")

        result = Broken().evaluate(_bitcoin_like())
        assert result.coin_id == "bitcoin"
        assert result.category == RiskCategory.QUARANTINE
        assert result.risk_score == 95.0
        assert result.reward_score == 5.0
        assert result.confidence == 0.0
        assert result.explanation == FAILURE_EXPLANATION

    def test_never_raises_on_garbage(self, evaluator):
        result = evaluator.evaluate(None)
        assert result.category == RiskCategory.QUARANTINE

    def test_module_helper(self):
        assert evaluate_risk_reward(_bitcoin_like()).category == RiskCategory.CORE


class TestFactors:
    def test_volatility_defaults_without_history(self):
        assert RiskRewardEvaluator.volatility_risk([]) == (50.0, True)

    def test_volatility_capped_at_100(self):
        risk, defaulted = RiskRewardEvaluator.volatility_risk([1.0, 2.0] * 20)
        assert risk == 100.0
        assert defaulted is False

    @pytest.mark.parametrize(
        "market_cap,expected",
        [(150e9, 5.0), (20e9, 15.0), (2e9, 30.0), (500e6, 50.0), (50e6, 70.0), (5e6, 90.0), (0.0, 90.0)],
    )
    def test_market_cap_bands(self, market_cap, expected):
        assert RiskRewardEvaluator.market_cap_risk(market_cap) == expected

    def test_liquidity_missing_inputs(self):
        assert RiskRewardEvaluator.liquidity_risk(0.0, 1e9) == 95.0
        assert RiskRewardEvaluator.liquidity_risk(1e6, 0.0) == 90.0

    def test_liquidity_bands(self):
        assert RiskRewardEvaluator.liquidity_risk(2e8, 1e9) == 10.0
        assert RiskRewardEvaluator.liquidity_risk(1e6, 1e9) == 90.0

    def test_utility_keywords_count_once_per_group(self):
        text = "Smart contract platform for DeFi and decentralized finance with oracle data feeds"
        assert RiskRewardEvaluator.utility_score(text) == 80.0

    def test_tokenomics_capped_high_circulation(self):
        candidate = Candidate(id="x", symbol="X", name="X", circulating_supply=90.0, max_supply=100.0)
        assert RiskRewardEvaluator.tokenomics_score(candidate) == 75.0

    def test_tokenomics_uncapped(self):
        candidate = Candidate(id="x", symbol="X", name="X", circulating_supply=90.0)
        assert RiskRewardEvaluator.tokenomics_score(candidate) == 40.0

    def test_adoption_uses_rank_and_volume(self):
        candidate = Candidate(id="x", symbol="X", name="X", rank=10, volume_24h=5e6)
        assert RiskRewardEvaluator.adoption_score(candidate) == 95.0


class TestCategorize:
    @pytest.mark.parametrize(
        "risk,reward,cap,expected",
        [
            (85.0, 50.0, 1e12, RiskCategory.QUARANTINE),
            (65.0, 15.0, 1e9, RiskCategory.QUARANTINE),
            (25.0, 50.0, 2e10, RiskCategory.CORE),
            (25.0, 50.0, 10e9, RiskCategory.MEDIUM),
            (79.6, 50.0, 1e9, RiskCategory.MEDIUM),
            (25.0, 50.0, 5e9, RiskCategory.MEDIUM),
            (55.0, 75.0, 1e9, RiskCategory.HIGH_RISK),
            (45.0, 40.0, 1e9, RiskCategory.MEDIUM),
        ],
    )
    def test_rules(self, evaluator, risk, reward, cap, expected):
        assert evaluator.categorize(risk, reward, cap) == expected

    def test_category_uses_unrounded_sums(self):
        class NearQuarantine(RiskRewardEvaluator):
            def _weighted(self, factors, weights):
                return 79.6 if weights is self.config.risk_weights else 50.0

        result = NearQuarantine().evaluate(_bitcoin_like())
        assert result.risk_score == 80.0
        assert result.category == RiskCategory.MEDIUM
        assert "(80/100)" in result.explanation
