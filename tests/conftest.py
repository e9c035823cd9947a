import logging
import threading
import warnings
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pytest
from urllib3.exceptions import NotOpenSSLWarning

from coin_scout import logging_config
from coin_scout.config import Config, reset_config
from coin_scout.contracts import (
    CoinScore,
    MarketMetrics,
    MomentumIndicators,
    RiskMetrics,
    TechnicalIndicators,
)
from coin_scout.exceptions import DataFetchError
from coin_scout.interfaces import PriceHistory, Trend
from coin_scout.pipeline.fallback_tracking import reset_fallback_state

# Silence urllib3 NotOpenSSLWarning in CI/dev environments where LibreSSL is used
warnings.filterwarnings("ignore", category=NotOpenSSLWarning)

DAY_MS = 86_400_000.0


# ══════════  Synthetic series  ═════════════════════════════════════


def rising_series(n: int = 40, start: float = 100.0, step: float = 5.0) -> List[float]:
    return [start + step * i for i in range(n)]


def flat_series(n: int = 40, value: float = 100.0) -> List[float]:
    return [value] * n


def noisy_series(n: int = 60, seed: int = 7, drift: float = 0.002, vol: float = 0.03) -> List[float]:
    rng = np.random.default_rng(seed)
    return list(100.0 * np.cumprod(1.0 + rng.normal(drift, vol, n)))


def history_of(prices: Sequence[float], volume: float = 1_000_000.0) -> PriceHistory:
    return PriceHistory(
        prices=tuple((i * DAY_MS, float(p)) for i, p in enumerate(prices)),
        volumes=tuple((i * DAY_MS, volume) for i in range(len(prices))),
    )


def make_score(
    coin_id: str,
    total: float = 60.0,
    volatility: float = 40.0,
    market_cap: float = 5e9,
    volume: float = 5e8,
    rank: Optional[int] = None,
    symbol: Optional[str] = None,
    trend: Trend = Trend.NEUTRAL,
) -> CoinScore:
    """Hand-built CoinScore; ``volatility`` drives the bucket (Low <30, Medium <70, High)."""
    return CoinScore(
        coin_id=coin_id,
        symbol=symbol or coin_id[:4].upper(),
        name=coin_id.replace("-", " ").title(),
        technical_score=total,
        momentum_score=total,
        volume_score=total,
        volatility_score=total,
        fundamental_score=total,
        total_score=total,
        trend=trend,
        signals=("MACD bullish", "Above 50-day SMA"),
        confidence=65.0,
        technical=TechnicalIndicators(
            rsi=55.0, macd=1.0, macd_signal=0.9, macd_histogram=0.1,
            sma20=10.0, sma50=9.5, ema12=10.1, ema26=9.8,
            bb_upper=11.0, bb_middle=10.0, bb_lower=9.0, bb_width=20.0,
            atr=0.4, obv=0.0, volume_ratio=1.0, last_price=10.2,
        ),
        momentum=MomentumIndicators(
            momentum=4.0, rate_of_change=4.0, price_velocity=0.5, trend_strength=2.0, volume_momentum=0.0,
        ),
        risk=RiskMetrics(
            volatility_30d=volatility, sharpe_ratio=1.2, max_drawdown=18.0,
            beta=volatility / 20.0, downside_deviation=volatility / 2.0, value_at_risk=3.0,
        ),
        market=MarketMetrics(
            market_cap=market_cap, volume_24h=volume,
            circulating_supply=None, total_supply=None, max_supply=None,
            current_price=10.2, price_change_24h=None, price_change_7d=None,
            price_change_30d=None, ath=None,
        ),
        rank=rank,
        scoring_version="2025.1",
    )


def market_row(coin_id: str, rank: int, market_cap: float = 5e9, volume: float = 4e8) -> Dict:
    return {
        "id": coin_id,
        "symbol": coin_id[:4].upper(),
        "name": coin_id.title(),
        "current_price": 10.0,
        "market_cap": market_cap,
        "market_cap_rank": rank,
        "total_volume": volume,
        "circulating_supply": 8e8,
        "total_supply": 1e9,
        "max_supply": 1e9,
        "ath": 40.0,
        "price_change_percentage_24h": 1.2,
        "price_change_percentage_7d": 3.4,
        "price_change_percentage_30d": 8.0,
    }


class FakeProvider:
    """In-memory market-data provider.

    ``histories`` maps coin id -> price list; ids in ``failing`` raise
    DataFetchError from price_history; ids in ``blocking`` wait on
    ``release`` before answering.
    """

    def __init__(
        self,
        rows: Iterable[Dict],
        histories: Dict[str, Sequence[float]],
        failing: Iterable[str] = (),
        blocking: Iterable[str] = (),
        details: Optional[Dict[str, Dict]] = None,
        list_error: Optional[Exception] = None,
    ):
        self.rows = list(rows)
        self.histories = dict(histories)
        self.failing = set(failing)
        self.blocking = set(blocking)
        self.details = details or {}
        self.list_error = list_error
        self.release = threading.Event()
        self.list_calls = []

    def list_markets(self, vs_currency=None, page=1, per_page=100):
        self.list_calls.append((page, per_page))
        if self.list_error is not None:
            raise self.list_error
        start = (page - 1) * per_page
        return [dict(r) for r in self.rows[start:start + per_page]]

    def price_history(self, coin_id, vs_currency=None, days=None):
        if coin_id in self.failing:
            raise DataFetchError("fake", coin_id=coin_id, reason="boom", status_code=502)
        if coin_id in self.blocking:
            self.release.wait(timeout=5.0)
        return history_of(self.histories.get(coin_id, ()))

    def coin_detail(self, coin_id):
        if coin_id not in self.details:
            raise DataFetchError("fake", coin_id=coin_id, reason="not found", status_code=404)
        return dict(self.details[coin_id])


# ══════════  Fixtures  ═════════════════════════════════════════════


@pytest.fixture(autouse=True)
def _isolate_global_state():
    reset_fallback_state()
    reset_config()
    yield
    reset_fallback_state()
    reset_config()
    # the CLI installs its own handler; put the package logger back for caplog
    logging_config._logger = None
    package_logger = logging.getLogger("coin_scout")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def config():
    return Config(advisory_api_key="", coingecko_api_key="", run_deadline_sec=30.0, max_workers=4)


@pytest.fixture
def score_factory():
    return make_score


@pytest.fixture
def series():
    return SimpleNamespace(
        rising=rising_series,
        flat=flat_series,
        noisy=noisy_series,
        history=history_of,
        market_row=market_row,
        provider=FakeProvider,
    )


@pytest.fixture
def universe():
    """Ten liquid coins including BTC/ETH/USDC, with 60-day noisy histories."""
    ids = [
        "bitcoin", "ethereum", "usd-coin", "solana", "cardano",
        "chainlink", "polkadot", "avalanche-2", "near", "aptos",
    ]
    rows = [market_row(cid, rank=i + 1, market_cap=5e11 / (i + 1)) for i, cid in enumerate(ids)]
    histories = {cid: noisy_series(60, seed=i + 1) for i, cid in enumerate(ids)}
    histories["usd-coin"] = flat_series(60, 1.0)
    return rows, histories


@pytest.fixture
def fake_provider(universe):
    rows, histories = universe
    provider = FakeProvider(rows, histories)
    yield provider
    provider.release.set()
