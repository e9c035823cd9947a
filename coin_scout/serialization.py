"""
Plain-record and DataFrame views of ranking, explain and portfolio outputs.

Records are JSON-safe (enums as values, tuples as lists) and stamped with
the scoring config version.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from coin_scout.contracts import AllocationItem, CoinScore, Policy, PortfolioResult, RiskRewardResult
from coin_scout.scoring_config import SCORING_CONFIG_VERSION

logger = logging.getLogger(__name__)


def _round(value: Optional[float], digits: int = 4) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), digits)


def score_to_record(score: CoinScore) -> Dict[str, Any]:
    """Flat record for one ranked coin."""
    return {
        "rank": score.rank,
        "coin_id": score.coin_id,
        "symbol": score.symbol,
        "name": score.name,
        "total_score": _round(score.total_score, 2),
        "technical_score": _round(score.technical_score, 2),
        "momentum_score": _round(score.momentum_score, 2),
        "volume_score": _round(score.volume_score, 2),
        "volatility_score": _round(score.volatility_score, 2),
        "fundamental_score": _round(score.fundamental_score, 2),
        "trend": score.trend.value,
        "confidence": _round(score.confidence, 2),
        "bucket": score.bucket.value,
        "rsi": _round(score.technical.rsi, 2),
        "volatility_30d": _round(score.risk.volatility_30d, 2),
        "sharpe_ratio": _round(score.risk.sharpe_ratio, 3),
        "max_drawdown": _round(score.risk.max_drawdown, 2),
        "market_cap": score.market.market_cap,
        "volume_24h": score.market.volume_24h,
        "signals": list(score.signals),
        "scoring_version": score.scoring_version or SCORING_CONFIG_VERSION,
    }


_SCORE_COLUMNS = (
    "rank", "coin_id", "symbol", "name", "total_score", "technical_score", "momentum_score",
    "volume_score", "volatility_score", "fundamental_score", "trend", "confidence", "bucket",
    "rsi", "volatility_30d", "sharpe_ratio", "max_drawdown", "market_cap", "volume_24h",
    "signals", "scoring_version",
)


def scores_to_frame(scores: Iterable[CoinScore]) -> pd.DataFrame:
    records = [score_to_record(s) for s in scores]
    if not records:
        return pd.DataFrame(columns=list(_SCORE_COLUMNS))
    df = pd.DataFrame.from_records(records)
    df["signals"] = df["signals"].apply(lambda items: "; ".join(items))
    return df


def risk_to_record(result: RiskRewardResult) -> Dict[str, Any]:
    return {
        "coin_id": result.coin_id,
        "name": result.name,
        "risk_score": result.risk_score,
        "reward_score": result.reward_score,
        "category": result.category.value,
        "confidence": result.confidence,
        "explanation": result.explanation,
        "risk_factors": dict(result.risk_factors),
        "reward_factors": dict(result.reward_factors),
        "scoring_version": SCORING_CONFIG_VERSION,
    }


def explanation_to_record(explanation) -> Dict[str, Any]:
    """Risk/reward payload plus the multi-factor score when one was computed."""
    record = risk_to_record(explanation.risk)
    record["symbol"] = explanation.candidate.symbol
    record["score"] = score_to_record(explanation.score) if explanation.score is not None else None
    return record


def policy_to_record(policy: Policy) -> Dict[str, Any]:
    record = asdict(policy)
    record["risk_tolerance"] = policy.risk_tolerance.value
    record["bucket_caps"] = {bucket.value: cap for bucket, cap in policy.bucket_caps.items()}
    record["holdings_target_range"] = list(policy.holdings_target_range)
    return record


def allocation_item_to_record(item: AllocationItem) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "coin_id": item.coin_id,
        "symbol": item.symbol,
        "name": item.name,
        "role": item.role.value,
        "bucket": item.bucket.value,
        "allocation_pct": _round(item.allocation_pct),
        "reasons": list(item.reasons),
        "risks": list(item.risks),
    }
    if item.contribution is not None:
        record["contribution"] = {"amount": item.contribution.amount, "cadence": item.contribution.cadence}
    return record


def portfolio_to_record(result: PortfolioResult) -> Dict[str, Any]:
    guardrails = result.guardrails
    return {
        "policy": policy_to_record(result.policy),
        "allocation": [allocation_item_to_record(i) for i in result.allocation],
        "guardrails": {
            "max_drawdown_alert_pct": guardrails.max_drawdown_alert_pct,
            "rebalance_threshold_pct": guardrails.rebalance_threshold_pct,
            "min_liquidity_vol_to_mcap": guardrails.min_liquidity_vol_to_mcap,
            "exclude_flags": list(guardrails.exclude_flags),
        },
        "checklist": list(result.checklist),
        "notes": result.notes,
        "warnings": list(result.warnings),
        "used_fallback": result.used_fallback,
        "total_allocation": _round(result.total_allocation),
        "scoring_version": SCORING_CONFIG_VERSION,
    }


def allocation_to_frame(result: PortfolioResult) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for item in result.allocation:
        rows.append({
            "coin_id": item.coin_id,
            "symbol": item.symbol,
            "role": item.role.value,
            "bucket": item.bucket.value,
            "allocation_pct": item.allocation_pct,
            "monthly_usd": item.contribution.amount if item.contribution else None,
        })
    return pd.DataFrame(rows, columns=["coin_id", "symbol", "role", "bucket", "allocation_pct", "monthly_usd"])


def export_scores_csv(scores: Iterable[CoinScore], path: Path, metadata: Optional[Dict[str, Any]] = None) -> Path:
    """Write the ranking to CSV with ``# key: value`` metadata header lines."""
    df = scores_to_frame(scores)
    meta = {
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "scoring_version": SCORING_CONFIG_VERSION,
        "rows": len(df),
    }
    if metadata:
        meta.update(metadata)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for key, value in meta.items():
            f.write(f"# {key}: {value}\n")
        df.to_csv(f, index=False)
    logger.info(f"Exported {len(df)} scores to {path}")
    return path
