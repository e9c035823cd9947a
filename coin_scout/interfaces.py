from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Tuple


class Trend(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Bucket(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Role(str, Enum):
    CORE = "core"
    SATELLITE = "satellite"
    STABLE = "stable"


class RiskCategory(str, Enum):
    CORE = "core"
    MEDIUM = "medium"
    HIGH_RISK = "high-risk"
    QUARANTINE = "quarantine"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "Conservative"
    BALANCED = "Balanced"
    AGGRESSIVE = "Aggressive"

    @classmethod
    def parse(cls, value: Any) -> "RiskTolerance":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        raise ValueError(f"Unknown risk tolerance: {value!r}")


def _finite_tuple(values: Optional[Iterable[Any]]) -> Tuple[float, ...]:
    out = []
    for v in values or ():
        try:
            f = float(v)
        except (TypeError, ValueError):
            continue
        if math.isfinite(f):
            out.append(f)
    return tuple(out)


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


@dataclass(frozen=True)
class PriceHistory:
    """Provider history: ``(timestamp_ms, value)`` pairs ascending by time."""
    prices: Tuple[Tuple[float, float], ...] = ()
    volumes: Tuple[Tuple[float, float], ...] = ()

    def price_values(self) -> Tuple[float, ...]:
        return _finite_tuple(p[1] for p in self.prices)

    def volume_values(self) -> Tuple[float, ...]:
        return _finite_tuple(v[1] for v in self.volumes)

    def __len__(self) -> int:
        return len(self.prices)


@dataclass(frozen=True)
class Candidate:
    """Immutable per-run snapshot of one asset.

    ``prices``/``volumes`` are chronological (oldest first). Non-finite
    entries are dropped on construction. ``rank`` is the provider's
    market-cap rank when known.
    """
    id: str
    symbol: str
    name: str
    prices: Tuple[float, ...] = ()
    volumes: Tuple[float, ...] = ()
    market_cap: float = 0.0
    volume_24h: float = 0.0
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    rank: Optional[int] = None

    # Market snapshot fields (percent changes, all-time high, project blurb)
    current_price: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_7d: Optional[float] = None
    price_change_30d: Optional[float] = None
    ath: Optional[float] = None
    description: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "prices", _finite_tuple(self.prices))
        object.__setattr__(self, "volumes", _finite_tuple(self.volumes))
        object.__setattr__(self, "market_cap", _optional_float(self.market_cap) or 0.0)
        object.__setattr__(self, "volume_24h", _optional_float(self.volume_24h) or 0.0)
        for name in (
            "circulating_supply", "total_supply", "max_supply", "current_price",
            "price_change_24h", "price_change_7d", "price_change_30d", "ath",
        ):
            object.__setattr__(self, name, _optional_float(getattr(self, name)))
        if self.rank is not None:
            try:
                rank = int(self.rank)
            except (TypeError, ValueError):
                rank = None
            object.__setattr__(self, "rank", rank if rank and rank > 0 else None)
        object.__setattr__(self, "tags", tuple(str(t) for t in (self.tags or ())))

    @property
    def last_price(self) -> Optional[float]:
        if self.current_price is not None and self.current_price > 0:
            return self.current_price
        return self.prices[-1] if self.prices else None

    @property
    def volume_to_market_cap(self) -> float:
        if self.market_cap <= 0:
            return 0.0
        return self.volume_24h / self.market_cap
