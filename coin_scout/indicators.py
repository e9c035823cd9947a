"""Pure time-series indicators over daily price / volume series.

Every function accepts a list, numpy array or pandas Series ordered oldest
first. Non-numeric and non-finite entries are dropped before computing.
None of these raise on short input: each returns a documented neutral
default instead (RSI 50, volume ratio 1, everything else 0).
"""
from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from coin_scout.contracts import MomentumIndicators, RiskMetrics, TechnicalIndicators
from coin_scout.scoring_config import (
    BETA_MARKET_VOLATILITY,
    BOLLINGER_STD,
    INDICATOR_PERIODS,
    MACD_SIGNAL_FACTOR,
    RISK_FREE_RATE_ANNUAL,
    TRADING_DAYS_PER_YEAR,
    VAR_CONFIDENCE,
)

SeriesLike = Iterable[float]

_ANNUALIZE = math.sqrt(TRADING_DAYS_PER_YEAR)


def _as_array(values: Optional[SeriesLike]) -> np.ndarray:
    if values is None:
        return np.empty(0, dtype=float)
    if isinstance(values, (pd.Series, np.ndarray)):
        raw = pd.Series(np.asarray(values, dtype=object).ravel())
    else:
        raw = pd.Series(list(values), dtype=object)
    arr = pd.to_numeric(raw, errors="coerce").to_numpy(dtype=float)
    return arr[np.isfinite(arr)]


def daily_returns(prices: SeriesLike) -> np.ndarray:
    """Bar-over-bar simple returns; pairs with a non-positive previous price are skipped."""
    arr = _as_array(prices)
    if arr.size < 2:
        return np.empty(0, dtype=float)
    prev, cur = arr[:-1], arr[1:]
    mask = prev > 0
    return (cur[mask] - prev[mask]) / prev[mask]


# --- Averages ---

def sma(prices: SeriesLike, period: int) -> float:
    """Simple moving average of the last ``period`` points (last price if shorter)."""
    arr = _as_array(prices)
    if arr.size == 0:
        return 0.0
    if period <= 0 or arr.size < period:
        return float(arr[-1])
    return float(arr[-period:].mean())


def ema(prices: SeriesLike, period: int) -> float:
    """Exponential moving average seeded with the SMA of the first ``period`` points."""
    arr = _as_array(prices)
    if arr.size == 0:
        return 0.0
    if period <= 0 or arr.size < period:
        return float(arr[-1])
    multiplier = 2.0 / (period + 1)
    value = float(arr[:period].mean())
    for price in arr[period:]:
        value = (float(price) - value) * multiplier + value
    return value


# --- Oscillators ---

def rsi(prices: SeriesLike, period: int = 14) -> float:
    """Relative strength index over the last ``period`` changes, bounded [0, 100]."""
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 50.0
    deltas = np.diff(arr[-(period + 1):])
    gains = float(deltas[deltas > 0].sum())
    losses = float(-deltas[deltas < 0].sum())
    if losses == 0:
        return 100.0
    rs = (gains / period) / (losses / period)
    return float(min(100.0, max(0.0, 100.0 - 100.0 / (1.0 + rs))))


def macd(prices: SeriesLike, fast: int = 12, slow: int = 26) -> Tuple[float, float, float]:
    """Return (macd, signal, histogram).

    The signal line is approximated as ``macd * 0.9`` rather than a 9-period
    EMA of the MACD series, so histogram always shares the MACD's sign.
    """
    value = ema(prices, fast) - ema(prices, slow)
    signal = value * MACD_SIGNAL_FACTOR
    return value, signal, value - signal


def bollinger_bands(
    prices: SeriesLike, period: int = 20, num_std: float = BOLLINGER_STD
) -> Tuple[float, float, float, float]:
    """Return (upper, middle, lower, width%) using the population std of the window."""
    arr = _as_array(prices)
    if arr.size == 0:
        return 0.0, 0.0, 0.0, 0.0
    middle = sma(arr, period)
    window = arr[-period:]
    std = float(np.sqrt(np.mean((window - middle) ** 2)))
    upper = middle + num_std * std
    lower = middle - num_std * std
    width = (upper - lower) / middle * 100.0 if middle != 0 else 0.0
    return upper, middle, lower, width


def atr(prices: SeriesLike, period: int = 14) -> float:
    """Average true range from close-to-close moves only (no high/low available)."""
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 0.0
    true_ranges = np.abs(np.diff(arr))
    return float(true_ranges[-period:].sum() / period)


def obv(prices: SeriesLike, volumes: SeriesLike) -> float:
    """On-balance volume accumulated from zero."""
    p = _as_array(prices)
    v = _as_array(volumes)
    if p.size != v.size or p.size < 2:
        return 0.0
    direction = np.sign(np.diff(p))
    return float((direction * v[1:]).sum())


def volume_ratio(volumes: SeriesLike) -> float:
    """Average of the last 5 volumes over the average of the 15 before them."""
    arr = _as_array(volumes)
    if arr.size < 20:
        return 1.0
    recent = arr[-5:].mean()
    older = arr[-20:-5].mean()
    return float(recent / older) if older > 0 else 1.0


# --- Momentum ---

def price_momentum(prices: SeriesLike, period: int = 10) -> float:
    """Percent change against the price ``period`` bars back."""
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 0.0
    past = arr[-period - 1]
    if past == 0:
        return 0.0
    return float((arr[-1] - past) / past * 100.0)


def rate_of_change(prices: SeriesLike, period: int = 10) -> float:
    arr = _as_array(prices)
    if arr.size < period + 1:
        return 0.0
    past = arr[-period - 1]
    if past == 0:
        return 0.0
    return float((arr[-1] / past - 1.0) * 100.0)


def price_velocity(prices: SeriesLike) -> float:
    """Mean of the last four bar-over-bar percent changes."""
    arr = _as_array(prices)
    if arr.size < 5:
        return 0.0
    changes = daily_returns(arr[-5:])
    if changes.size == 0:
        return 0.0
    return float(changes.mean() * 100.0)


def trend_strength(prices: SeriesLike, period: int = 20) -> float:
    """Percent deviation of the last price from its SMA20."""
    arr = _as_array(prices)
    if arr.size < period:
        return 0.0
    average = sma(arr, period)
    if average == 0:
        return 0.0
    return float((arr[-1] - average) / average * 100.0)


def volume_momentum(volumes: SeriesLike) -> float:
    """Percent change of the last-5 average volume vs the 5 before."""
    arr = _as_array(volumes)
    if arr.size < 10:
        return 0.0
    recent = arr[-5:].mean()
    older = arr[-10:-5].mean()
    return float((recent - older) / older * 100.0) if older > 0 else 0.0


# --- Risk ---

def volatility(prices: SeriesLike, period: int = 30) -> float:
    """Annualized volatility (%) of daily returns over the last ``period`` prices."""
    arr = _as_array(prices)
    if arr.size < period:
        return 0.0
    returns = daily_returns(arr[-period:])
    if returns.size == 0:
        return 0.0
    return float(np.std(returns) * _ANNUALIZE * 100.0)


def sharpe_ratio(prices: SeriesLike, risk_free_annual: float = RISK_FREE_RATE_ANNUAL) -> float:
    """Annualized Sharpe ratio over the full series."""
    arr = _as_array(prices)
    if arr.size < 30:
        return 0.0
    returns = daily_returns(arr)
    if returns.size == 0:
        return 0.0
    rf = risk_free_annual / TRADING_DAYS_PER_YEAR
    std = float(np.std(returns - rf))
    if std <= 1e-12:
        return 0.0
    return float((returns.mean() - rf) / std * _ANNUALIZE)


def max_drawdown(prices: SeriesLike) -> float:
    """Largest peak-to-trough decline in percent (never negative)."""
    arr = _as_array(prices)
    if arr.size < 2:
        return 0.0
    peaks = np.maximum.accumulate(arr)
    valid = peaks > 0
    if not valid.any():
        return 0.0
    drawdowns = (peaks[valid] - arr[valid]) / peaks[valid]
    return float(max(0.0, drawdowns.max()) * 100.0)


def beta(prices: SeriesLike) -> float:
    """Volatility relative to an assumed 20% market volatility (no index covariance)."""
    return volatility(prices, INDICATOR_PERIODS["volatility"]) / BETA_MARKET_VOLATILITY


def downside_deviation(prices: SeriesLike) -> float:
    returns = daily_returns(prices)
    negative = returns[returns < 0]
    if negative.size == 0:
        return 0.0
    return float(np.std(negative) * _ANNUALIZE * 100.0)


def value_at_risk(prices: SeriesLike, confidence: float = VAR_CONFIDENCE) -> float:
    """Historical one-day VaR in percent (absolute value of the tail return)."""
    returns = np.sort(daily_returns(prices))
    if returns.size == 0:
        return 0.0
    index = int(math.floor(round((1.0 - confidence) * returns.size, 9)))
    index = min(max(index, 0), returns.size - 1)
    return float(abs(returns[index]) * 100.0)


# --- Bundles ---

def technical_indicators(prices: SeriesLike, volumes: SeriesLike, periods=INDICATOR_PERIODS) -> TechnicalIndicators:
    arr = _as_array(prices)
    vols = _as_array(volumes)
    # the long average falls back to the whole history when it is shorter than the window
    long_window = max(1, min(periods["sma_long"], arr.size))
    value, signal, histogram = macd(arr, periods["ema_fast"], periods["ema_slow"])
    upper, middle, lower, width = bollinger_bands(arr, periods["bollinger"])
    return TechnicalIndicators(
        rsi=rsi(arr, periods["rsi"]),
        macd=value,
        macd_signal=signal,
        macd_histogram=histogram,
        sma20=sma(arr, periods["sma_short"]),
        sma50=sma(arr, long_window),
        ema12=ema(arr, periods["ema_fast"]),
        ema26=ema(arr, periods["ema_slow"]),
        bb_upper=upper,
        bb_middle=middle,
        bb_lower=lower,
        bb_width=width,
        atr=atr(arr, periods["atr"]),
        obv=obv(arr, vols),
        volume_ratio=volume_ratio(vols),
        last_price=float(arr[-1]) if arr.size else 0.0,
    )


def momentum_indicators(prices: SeriesLike, volumes: SeriesLike, periods=INDICATOR_PERIODS) -> MomentumIndicators:
    arr = _as_array(prices)
    return MomentumIndicators(
        momentum=price_momentum(arr, periods["momentum"]),
        rate_of_change=rate_of_change(arr, periods["momentum"]),
        price_velocity=price_velocity(arr),
        trend_strength=trend_strength(arr, periods["sma_short"]),
        volume_momentum=volume_momentum(volumes),
    )


def risk_metrics(prices: SeriesLike, periods=INDICATOR_PERIODS) -> RiskMetrics:
    arr = _as_array(prices)
    return RiskMetrics(
        volatility_30d=volatility(arr, periods["volatility"]),
        sharpe_ratio=sharpe_ratio(arr),
        max_drawdown=max_drawdown(arr),
        beta=beta(arr),
        downside_deviation=downside_deviation(arr),
        value_at_risk=value_at_risk(arr),
    )
