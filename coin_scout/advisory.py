"""
Satellite advisory plug-in.

An advisory client proposes satellite holdings from the filtered candidate
list. Its output is untrusted: ``parse_advisory_response`` validates it
against a strict pydantic schema plus cross-checks against the candidates
and policy, and raises AdvisoryResponseError on any violation so the
caller can switch to the deterministic fallback in full.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol, Sequence, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from coin_scout.config import Config, get_config
from coin_scout.contracts import AllocationItem, CoinScore, Policy
from coin_scout.exceptions import AdvisoryResponseError, AdvisoryUnavailableError
from coin_scout.interfaces import Bucket, Role
from coin_scout.logging_config import mask_sensitive

logger = logging.getLogger(__name__)

MAX_PROMPT_CANDIDATES = 50

SYSTEM_PROMPT = """You are a cautious cryptocurrency portfolio advisor. Select satellite holdings from the provided candidates to complete a starter portfolio allocation.

STRICT RULES:
1. Return ONLY valid JSON format
2. Respect all allocation caps and bucket limits
3. Select based on total_score, momentum, and technical indicators
4. Prefer coins with strong fundamentals and reasonable risk
5. Diversify across different use cases and technologies
6. Include reasoning for each selection"""

RESPONSE_EXAMPLE = """{
  "satellites": [
    {
      "coin_id": "solana",
      "symbol": "SOL",
      "name": "Solana",
      "bucket": "Medium",
      "allocation_pct": 0.08,
      "reasons": ["High throughput", "Growing ecosystem"],
      "risks": ["Network outages", "Competition"]
    }
  ]
}"""

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


# ---------------------------------------------------------------------------
# Response schema
# ---------------------------------------------------------------------------


class SatelliteProposal(BaseModel):
    """One proposed satellite row."""

    model_config = ConfigDict(extra="ignore", strict=True)

    coin_id: str = Field(min_length=1)
    symbol: str = ""
    name: str = ""
    bucket: Literal["Low", "Medium", "High"]
    allocation_pct: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    reasons: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)

    @field_validator("coin_id")
    @classmethod
    def _strip_coin_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("coin_id must not be blank")
        return value


class AdvisoryResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)

    satellites: List[SatelliteProposal]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _decode(payload: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(payload, Mapping):
        return payload
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if not isinstance(payload, str):
        raise AdvisoryResponseError(f"unsupported payload type {type(payload).__name__}")
    text = payload.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AdvisoryResponseError(f"malformed JSON: {exc.msg}", payload=payload[:200]) from exc
    if not isinstance(decoded, Mapping):
        raise AdvisoryResponseError("top-level JSON value is not an object", payload=payload[:200])
    return decoded


def parse_advisory_response(
    payload: Union[str, bytes, Mapping[str, Any]],
    candidates: Sequence[CoinScore],
    policy: Policy,
) -> List[AllocationItem]:
    """Validate an advisory payload into satellite AllocationItems (not yet capped).

    Raises:
        AdvisoryResponseError: malformed JSON, schema violation, empty list,
            unknown or duplicate coin id, or a bucket the policy caps at zero.
    """
    decoded = _decode(payload)
    try:
        response = AdvisoryResponse.model_validate(decoded)
    except ValidationError as exc:
        raise AdvisoryResponseError(
            f"schema violation ({exc.error_count()} errors)", payload=str(decoded)[:200]
        ) from exc

    if not response.satellites:
        raise AdvisoryResponseError("no satellites proposed")

    by_id: Dict[str, CoinScore] = {c.coin_id: c for c in candidates}
    seen = set()
    items: List[AllocationItem] = []
    for proposal in response.satellites:
        candidate = by_id.get(proposal.coin_id)
        if candidate is None:
            raise AdvisoryResponseError(f"unknown coin_id {proposal.coin_id!r}")
        if proposal.coin_id in seen:
            raise AdvisoryResponseError(f"duplicate coin_id {proposal.coin_id!r}")
        seen.add(proposal.coin_id)

        proposed_bucket = Bucket(proposal.bucket)
        if policy.bucket_cap(proposed_bucket) <= 0:
            raise AdvisoryResponseError(f"bucket {proposal.bucket} is capped at zero")
        # the bucket is recomputed from volatility so caps cannot be sidestepped
        bucket = candidate.bucket
        if bucket != proposed_bucket:
            logger.debug(f"Advisory bucket {proposed_bucket.value} for {proposal.coin_id} replaced by {bucket.value}")
        if policy.bucket_cap(bucket) <= 0:
            raise AdvisoryResponseError(f"{proposal.coin_id} falls in zero-capped bucket {bucket.value}")

        items.append(AllocationItem(
            coin_id=candidate.coin_id,
            symbol=proposal.symbol or candidate.symbol,
            name=proposal.name or candidate.name,
            role=Role.SATELLITE,
            bucket=bucket,
            allocation_pct=float(proposal.allocation_pct),
            reasons=tuple(proposal.reasons),
            risks=tuple(proposal.risks),
        ))
    return items


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


def candidate_digest(score: CoinScore) -> Dict[str, Any]:
    return {
        "coin_id": score.coin_id,
        "symbol": score.symbol,
        "name": score.name,
        "total_score": round(score.total_score, 2),
        "technical_score": round(score.technical_score, 2),
        "momentum_score": round(score.momentum_score, 2),
        "bucket": score.bucket.value,
        "market_cap": score.market.market_cap,
        "vol_to_mcap": score.market.volume_to_market_cap,
        "trend": score.trend.value,
        "signals": list(score.signals[:3]),
    }


def build_messages(candidates: Sequence[CoinScore], policy: Policy) -> List[Dict[str, str]]:
    """System + user chat messages for satellite selection (top 50 candidates)."""
    caps = policy.bucket_caps
    lines = []
    for c in (candidate_digest(s) for s in candidates[:MAX_PROMPT_CANDIDATES]):
        lines.append(
            f"{c['symbol']}: Score {c['total_score']:.1f}, {c['bucket']} risk, "
            f"MCap ${c['market_cap'] / 1e9:.1f}B, Trend {c['trend']}, "
            f"Signals: {', '.join(c['signals'])}"
        )
    user_prompt = (
        f"Generate satellites for {policy.risk_tolerance.value} portfolio:\n\n"
        f"TARGET SATELLITE ALLOCATION: {policy.satellite_target_pct * 100:.1f}%\n"
        f"BUCKET CAPS: High {caps.get(Bucket.HIGH, 0) * 100:g}%, "
        f"Medium {caps.get(Bucket.MEDIUM, 0) * 100:g}%, Low {caps.get(Bucket.LOW, 0) * 100:g}%\n"
        f"PER-ASSET CAP: {policy.per_asset_cap_pct * 100:g}%\n"
        f"TARGET HOLDINGS: {policy.holdings_target_range[0]}-{policy.holdings_target_range[1]}\n\n"
        f"CANDIDATES:\n" + "\n".join(lines) + "\n\n"
        f"Return STRICT JSON:\n{RESPONSE_EXAMPLE}"
    )
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": user_prompt},
    ]


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class AdvisoryClient(Protocol):
    """Anything that can propose satellites for a policy."""

    def propose(
        self,
        candidates: Sequence[CoinScore],
        policy: Policy,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Union[str, Mapping[str, Any]]:
        ...


class ChatAdvisoryClient:
    """OpenAI-compatible chat-completions client (Groq by default)."""

    def __init__(self, config: Optional[Config] = None, session: Optional[requests.Session] = None) -> None:
        self.config = config or get_config()
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self.config.has_advisory_key()

    def chat(self, messages: List[Dict[str, str]]) -> str:
        if not self.enabled:
            raise AdvisoryUnavailableError("ADVISORY_API_KEY not configured")
        url = f"{self.config.advisory_base_url.rstrip('/')}/chat/completions"
        body = {
            "model": self.config.advisory_model,
            "messages": messages,
            "temperature": self.config.advisory_temperature,
            "max_tokens": self.config.advisory_max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.advisory_api_key}",
        }
        logger.debug(f"Advisory request to {url} with key {mask_sensitive(self.config.advisory_api_key)}")
        try:
            response = self.session.post(url, json=body, headers=headers, timeout=self.config.advisory_timeout_sec)
        except requests.RequestException as exc:
            raise AdvisoryUnavailableError(f"transport error: {exc}") from exc
        if response.status_code != 200:
            raise AdvisoryUnavailableError(f"HTTP {response.status_code} from advisory endpoint")
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdvisoryResponseError("chat completion missing message content") from exc
        return str(content or "").strip()

    def propose(
        self,
        candidates: Sequence[CoinScore],
        policy: Policy,
        context: Optional[Mapping[str, Any]] = None,
    ) -> str:
        return self.chat(build_messages(candidates, policy))


class StaticAdvisoryClient:
    """Returns a fixed payload; used for offline runs and replaying saved responses."""

    def __init__(self, payload: Union[str, Mapping[str, Any]]) -> None:
        self.payload = payload

    def propose(
        self,
        candidates: Sequence[CoinScore],
        policy: Policy,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Union[str, Mapping[str, Any]]:
        return self.payload
