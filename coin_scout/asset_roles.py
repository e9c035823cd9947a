"""
Asset role table: which coin ids are fixed core / stable rows.

The same table is used by the candidate filter (to keep reserved ids out of
the satellite pool) and by the allocation composer (to emit the fixed core
rows with their editorial reasons and risks).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional, Tuple

from coin_scout.interfaces import Bucket, Role


@dataclass(frozen=True)
class AssetRole:
    coin_id: str
    symbol: str
    name: str
    role: Role
    bucket: Bucket
    reasons: Tuple[str, ...] = ()
    risks: Tuple[str, ...] = ()


BITCOIN = AssetRole(
    coin_id="bitcoin",
    symbol="BTC",
    name="Bitcoin",
    role=Role.CORE,
    bucket=Bucket.LOW,
    reasons=("Digital gold standard", "Highest liquidity", "Store of value"),
    risks=("Macro sensitivity", "Regulatory uncertainty"),
)

ETHEREUM = AssetRole(
    coin_id="ethereum",
    symbol="ETH",
    name="Ethereum",
    role=Role.CORE,
    bucket=Bucket.MEDIUM,
    reasons=("Smart contract platform", "DeFi ecosystem", "ETH 2.0 staking"),
    risks=("L2 competition", "Gas fee volatility", "Execution risk"),
)

USD_COIN = AssetRole(
    coin_id="usd-coin",
    symbol="USDC",
    name="USD Coin",
    role=Role.STABLE,
    bucket=Bucket.LOW,
    reasons=("Capital preservation", "Buy dip opportunities", "Risk management"),
    risks=("Issuer risk", "Regulatory risk", "No growth potential"),
)

STABLECOIN_IDS: FrozenSet[str] = frozenset({"usd-coin", "tether", "dai", "true-usd", "binance-usd"})


@dataclass(frozen=True)
class AssetRoleTable:
    """Injected id -> role mapping shared by filtering and composition."""
    btc: AssetRole = BITCOIN
    eth: AssetRole = ETHEREUM
    stable: AssetRole = USD_COIN
    stablecoin_ids: FrozenSet[str] = STABLECOIN_IDS
    extra_roles: Mapping[str, Role] = field(default_factory=dict)

    @property
    def core_ids(self) -> FrozenSet[str]:
        return frozenset({self.btc.coin_id, self.eth.coin_id})

    def role_of(self, coin_id: str) -> Optional[Role]:
        if coin_id in self.core_ids:
            return Role.CORE
        if coin_id in self.stablecoin_ids or coin_id == self.stable.coin_id:
            return Role.STABLE
        return self.extra_roles.get(coin_id)

    def is_reserved(self, coin_id: str) -> bool:
        """True when the id is a fixed core or stable row and never a satellite."""
        return self.role_of(coin_id) in (Role.CORE, Role.STABLE)


DEFAULT_ASSET_ROLES = AssetRoleTable()
