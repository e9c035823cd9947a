import pytest

from coin_scout.contracts import MarketMetrics, RiskMetrics
from coin_scout.exceptions import InsufficientDataError
from coin_scout.interfaces import Bucket, Candidate, Trend
from coin_scout.scoring import MultiFactorScorer, market_metrics, rank_candidates, sort_scores
from coin_scout.scoring_config import ScoringConfig


def _market(**overrides) -> MarketMetrics:
    fields = dict(
        market_cap=0.0, volume_24h=0.0, circulating_supply=None, total_supply=None,
        max_supply=None, current_price=None, price_change_24h=None, price_change_7d=None,
        price_change_30d=None, ath=None,
    )
    fields.update(overrides)
    return MarketMetrics(**fields)


@pytest.fixture
def scorer():
    return MultiFactorScorer()


# ── Scenario: steadily rising series ──────────────────────────────


class TestRisingSeries:
    def test_rsi_sma_bonuses_and_bullish_trend(self, scorer, series):
        candidate = Candidate(id="rising", symbol="RISE", name="Rising", prices=series.rising(40))
        score = scorer.score(candidate)

        assert score.technical.rsi == 100.0
        assert score.trend == Trend.BULLISH
        assert "Above 50-day SMA" in score.signals
        assert "RSI overbought" in score.signals
        assert "Strong momentum" in score.signals
        # -15 overbought, +10 MACD, +10 above SMA20, +10 above SMA50, -10 upper band
        assert score.technical_score == pytest.approx(55.0)
        assert score.momentum_score == pytest.approx(85.0)

    def test_signal_order_is_fixed(self, scorer, series):
        score = scorer.score(Candidate(id="rising", symbol="RISE", name="Rising", prices=series.rising(40)))
        assert score.signals == ("RSI overbought", "MACD bullish", "Above 50-day SMA", "Strong momentum")

    def test_thirty_day_change_derived_from_history(self, series):
        candidate = Candidate(id="rising", symbol="RISE", name="Rising", prices=series.rising(40))
        market = market_metrics(candidate)
        assert market.price_change_30d == pytest.approx((295.0 - 145.0) / 145.0 * 100.0)


class TestFlatSeries:
    def test_flat_series_is_calm(self, scorer, series):
        score = scorer.score(Candidate(id="flat", symbol="FLAT", name="Flat", prices=series.flat(40)))
        assert score.risk.volatility_30d == 0.0
        assert score.risk.sharpe_ratio == 0.0
        assert score.risk.max_drawdown == 0.0
        assert score.bucket == Bucket.LOW
        assert score.volatility_score == pytest.approx(80.0)

    def test_flat_window_reads_overbought(self, scorer, series):
        score = scorer.score(Candidate(id="flat", symbol="FLAT", name="Flat", prices=series.flat(40)))
        assert score.technical.rsi == 100.0
        assert score.signals[0] == "RSI overbought"
        assert score.trend == Trend.BEARISH
        # -15 overbought, -10 MACD, no SMA or band adjustments
        assert score.technical_score == pytest.approx(25.0)


# ── Bounds under extreme inputs ───────────────────────────────────


class TestBounds:
    @pytest.mark.parametrize(
        "prices,market_cap,volume",
        [
            ([1e-8, 1e8] * 20, 1e15, 1e18),
            ([1e8 / (i + 1) ** 3 for i in range(40)], 1.0, 0.0),
            ([5.0] * 39 + [5e9], 0.0, 1e12),
        ],
    )
    def test_all_scores_within_0_100(self, scorer, prices, market_cap, volume):
        candidate = Candidate(
            id="extreme", symbol="EXT", name="Extreme", prices=prices, volumes=[volume] * len(prices),
            market_cap=market_cap, volume_24h=volume, circulating_supply=1e12, total_supply=1.0,
            price_change_30d=1e9, ath=1e-9, current_price=1e9,
        )
        score = scorer.score(candidate)
        for value in (
            score.technical_score, score.momentum_score, score.volume_score,
            score.volatility_score, score.fundamental_score, score.total_score, score.confidence,
        ):
            assert 0.0 <= value <= 100.0

    def test_insufficient_history_raises(self, scorer):
        with pytest.raises(InsufficientDataError) as exc_info:
            scorer.score(Candidate(id="short", symbol="S", name="Short", prices=[1.0] * 29))
        assert exc_info.value.required == 30
        assert exc_info.value.actual == 29

    def test_invalid_weights_rejected(self):
        with pytest.raises(ValueError):
            MultiFactorScorer(ScoringConfig(component_weights={"technical": 0.5, "momentum": 0.1}))


# ── Component scores ──────────────────────────────────────────────


class TestComponents:
    def test_volume_skips_turnover_without_market_cap(self, scorer):
        assert scorer.score_volume(_market(market_cap=0.0, volume_24h=1e9), []) == 50.0

    def test_volume_high_turnover(self, scorer):
        assert scorer.score_volume(_market(market_cap=1e9, volume_24h=2e8), []) == 70.0

    def test_volume_surge(self, scorer):
        volumes = [100.0] * 23 + [300.0] * 7
        assert scorer.score_volume(_market(market_cap=1e9, volume_24h=2e7), volumes) == 70.0

    def test_volume_trend_needs_thirty_points(self, scorer):
        assert scorer.score_volume(_market(market_cap=1e9, volume_24h=2e7), [100.0] * 10 + [900.0] * 7) == 50.0

    def test_volatility_best_case(self, scorer):
        risk = RiskMetrics(
            volatility_30d=20.0, sharpe_ratio=2.5, max_drawdown=10.0,
            beta=1.0, downside_deviation=5.0, value_at_risk=1.0,
        )
        assert scorer.score_volatility(risk) == 100.0

    def test_volatility_worst_case_clamped(self, scorer):
        risk = RiskMetrics(
            volatility_30d=150.0, sharpe_ratio=-1.0, max_drawdown=80.0,
            beta=7.5, downside_deviation=90.0, value_at_risk=20.0,
        )
        assert scorer.score_volatility(risk) == 0.0

    def test_fundamental_all_positive(self, scorer):
        market = _market(
            market_cap=5e9, circulating_supply=9e8, total_supply=1e9,
            price_change_30d=15.0, ath=100.0, current_price=10.0,
        )
        assert scorer.score_fundamental(market) == 100.0

    def test_fundamental_zero_circulating_skips_supply_ratio(self, scorer):
        market = _market(market_cap=5e9, circulating_supply=0.0, total_supply=1e9)
        assert scorer.score_fundamental(market) == 70.0

    def test_fundamental_missing_total_uses_circulating(self, scorer):
        market = _market(market_cap=5e9, circulating_supply=5e8, total_supply=None)
        assert scorer.score_fundamental(market) == 80.0

    def test_fundamental_ath_skipped_when_unknown(self, scorer):
        market = _market(market_cap=5e9, ath=0.0, current_price=10.0)
        assert scorer.score_fundamental(market) == 70.0


# ── Ranking ───────────────────────────────────────────────────────


class TestRanking:
    def test_rank_isolates_failures(self, series):
        class FlakyScorer(MultiFactorScorer):
            def score_fundamental(self, market):
                if market.market_cap == 13.0:
                    raise RuntimeError("bad data")
                return super().score_fundamental(market)

        candidates = [
            Candidate(id="a", symbol="A", name="A", prices=series.noisy(60, seed=1), market_cap=2e9),
            Candidate(id="b", symbol="B", name="B", prices=series.noisy(60, seed=2), market_cap=13.0),
            Candidate(id="c", symbol="C", name="C", prices=[1.0] * 5),
            Candidate(id="d", symbol="D", name="D", prices=series.noisy(60, seed=4), market_cap=3e9),
        ]
        ranked = FlakyScorer().rank(candidates)
        assert sorted(s.coin_id for s in ranked) == ["a", "d"]
        assert ranked[0].total_score >= ranked[1].total_score

    def test_rank_is_deterministic(self, series):
        candidates = [
            Candidate(id=f"c{i}", symbol=f"C{i}", name=f"C{i}", prices=series.noisy(60, seed=i), market_cap=1e9 * (i + 1))
            for i in range(6)
        ]
        first = [(s.coin_id, s.total_score) for s in rank_candidates(candidates)]
        second = [(s.coin_id, s.total_score) for s in rank_candidates(candidates)]
        assert first == second

    def test_ties_broken_by_coin_id(self, score_factory):
        ordered = sort_scores([score_factory("zeta", total=70.0), score_factory("alpha", total=70.0), score_factory("mid", total=80.0)])
        assert [s.coin_id for s in ordered] == ["mid", "alpha", "zeta"]

    def test_score_carries_rank_and_version(self, scorer, series):
        candidate = Candidate(id="x", symbol="X", name="X", prices=series.noisy(60), rank=7)
        score = scorer.score(candidate)
        assert score.rank == 7
        assert score.scoring_version == "2025.1"
