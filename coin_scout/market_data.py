"""
CoinGecko market-data provider.

Implements the provider contract used by the ranking pipeline:
- ``list_markets``: market rows ordered by market cap
- ``price_history``: daily price / volume history
- ``coin_detail``: description, supply and performance snapshot

Includes retry with exponential backoff on 429 / 5xx / timeouts and a
per-endpoint TTL cache. Callers only see a result or a DataFetchError.
"""
from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from coin_scout.config import Config, get_config
from coin_scout.exceptions import (
    DataFetchError,
    ProviderUnavailableError,
    RateLimitError,
    classify_http_error,
)
from coin_scout.interfaces import Candidate, PriceHistory

logger = logging.getLogger(__name__)

PROVIDER = "coingecko"


class TTLCache:
    """Thread-safe in-memory cache with per-lookup TTL.

    Entries older than ``max_age`` are purged on every ``put``, and the oldest
    entry is evicted once ``max_entries`` is reached.
    """

    def __init__(self, max_age: float = 86400.0, max_entries: int = 4096) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()
        self.max_age = max_age
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0

    def get(self, key: str, ttl: float) -> Optional[Any]:
        """Retrieve from cache if not expired."""
        with self._lock:
            entry = self._data.get(key)
            if entry is not None:
                if time.time() - entry["timestamp"] < ttl:
                    self.hits += 1
                    return entry["data"]
                del self._data[key]
            self.misses += 1
            return None

    def put(self, key: str, data: Any) -> None:
        """Store in cache with timestamp."""
        with self._lock:
            now = time.time()
            expired = [k for k, entry in self._data.items() if now - entry["timestamp"] >= self.max_age]
            for k in expired:
                del self._data[k]
            # dict order is insertion order; re-inserting moves the key to the end
            self._data.pop(key, None)
            while len(self._data) >= self.max_entries:
                del self._data[next(iter(self._data))]
            self._data[key] = {"data": data, "timestamp": now}

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"total_entries": len(self._data), "hits": self.hits, "misses": self.misses}


class CoinGeckoProvider:
    """Market-data provider backed by the CoinGecko v3 REST API."""

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[requests.Session] = None,
        cache: Optional[TTLCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or get_config()
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else TTLCache(
            max_age=max(
                self.config.cache_ttl_markets_sec,
                self.config.cache_ttl_coin_sec,
                self.config.cache_ttl_history_sec,
            )
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self.config.coingecko_api_key
        return headers

    def _http_get_with_retry(self, path: str, params: Optional[Dict[str, Any]] = None, coin_id: Optional[str] = None) -> Any:
        """HTTP GET with retry logic and exponential backoff.

        Retries 429, 5xx, timeouts and connection errors up to
        ``http_max_retries`` attempts; other HTTP errors raise immediately.
        """
        url = f"{self.config.coingecko_base_url.rstrip('/')}{path}"
        max_retries = max(1, self.config.http_max_retries)
        last_error: DataFetchError = ProviderUnavailableError(PROVIDER, reason="no attempt made")

        for attempt in range(1, max_retries + 1):
            try:
                response = self.session.get(
                    url,
                    params=params,
                    headers=self._headers(),
                    timeout=self.config.http_timeout_sec,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = ProviderUnavailableError(PROVIDER, reason=f"{type(exc).__name__}: {exc}")
                logger.warning(f"{type(exc).__name__} on attempt {attempt}/{max_retries} for {url}")
                if attempt < max_retries:
                    self._sleep(2 ** attempt)
                continue

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as exc:
                    raise DataFetchError(PROVIDER, coin_id=coin_id, reason=f"invalid JSON: {exc}", url=url) from exc

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                last_error = RateLimitError(PROVIDER, coin_id=coin_id, retry_after=retry_after)
                wait_time = retry_after if retry_after is not None else 2 ** attempt
                logger.warning(f"Rate limited on {url}, waiting {wait_time}s")
                if attempt < max_retries:
                    self._sleep(wait_time)
                continue

            error = classify_http_error(response.status_code, PROVIDER, coin_id)
            if response.status_code >= 500:
                last_error = error
                logger.warning(f"HTTP {response.status_code} on attempt {attempt}/{max_retries} for {url}")
                if attempt < max_retries:
                    self._sleep(2 ** attempt)
                continue
            raise error

        raise last_error

    def _cached(self, key: str, ttl: float, loader: Callable[[], Any]) -> Any:
        cached = self.cache.get(key, ttl)
        if cached is not None:
            return cached
        data = loader()
        self.cache.put(key, data)
        return data

    # ------------------------------------------------------------------
    # Provider contract
    # ------------------------------------------------------------------

    def list_markets(self, vs_currency: Optional[str] = None, page: int = 1, per_page: int = 100) -> List[Dict[str, Any]]:
        vs = vs_currency or self.config.vs_currency
        params = {
            "vs_currency": vs,
            "order": "market_cap_desc",
            "per_page": per_page,
            "page": page,
            "sparkline": "false",
            "price_change_percentage": "24h,7d,30d",
        }
        data = self._cached(
            f"markets:{vs}:{page}:{per_page}",
            self.config.cache_ttl_markets_sec,
            lambda: self._http_get_with_retry("/coins/markets", params),
        )
        if not isinstance(data, list):
            raise DataFetchError(PROVIDER, reason="markets response is not a list")
        return [normalize_market_row(row) for row in data if isinstance(row, Mapping) and row.get("id")]

    def price_history(self, coin_id: str, vs_currency: Optional[str] = None, days: Optional[int] = None) -> PriceHistory:
        vs = vs_currency or self.config.vs_currency
        days = days or self.config.history_days
        data = self._cached(
            f"history:{coin_id}:{vs}:{days}",
            self.config.cache_ttl_history_sec,
            lambda: self._http_get_with_retry(
                f"/coins/{coin_id}/market_chart", {"vs_currency": vs, "days": days}, coin_id=coin_id
            ),
        )
        if not isinstance(data, Mapping):
            raise DataFetchError(PROVIDER, coin_id=coin_id, reason="history response is not an object")
        return PriceHistory(
            prices=_pairs(data.get("prices")),
            volumes=_pairs(data.get("total_volumes")),
        )

    def coin_detail(self, coin_id: str) -> Dict[str, Any]:
        params = {
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        }
        data = self._cached(
            f"coin:{coin_id}",
            self.config.cache_ttl_coin_sec,
            lambda: self._http_get_with_retry(f"/coins/{coin_id}", params, coin_id=coin_id),
        )
        if not isinstance(data, Mapping):
            raise DataFetchError(PROVIDER, coin_id=coin_id, reason="coin response is not an object")
        return normalize_coin_detail(data, self.config.vs_currency)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Market data cache cleared")


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


def _pairs(raw: Any) -> tuple:
    out = []
    for entry in raw or ():
        if not isinstance(entry, (list, tuple)) or len(entry) < 2 or entry[1] is None:
            continue
        try:
            out.append((float(entry[0]), float(entry[1])))
        except (TypeError, ValueError):
            continue
    return tuple(out)


def normalize_market_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "symbol": str(row.get("symbol") or "").upper(),
        "name": row.get("name") or row.get("id"),
        "current_price": row.get("current_price"),
        "market_cap": row.get("market_cap") or 0.0,
        "market_cap_rank": row.get("market_cap_rank"),
        "total_volume": row.get("total_volume") or 0.0,
        "circulating_supply": row.get("circulating_supply"),
        "total_supply": row.get("total_supply"),
        "max_supply": row.get("max_supply"),
        "ath": row.get("ath"),
        "price_change_percentage_24h": row.get("price_change_percentage_24h"),
        "price_change_percentage_7d": row.get("price_change_percentage_7d_in_currency"),
        "price_change_percentage_30d": row.get("price_change_percentage_30d_in_currency"),
    }


def normalize_coin_detail(data: Mapping[str, Any], vs_currency: str = "usd") -> Dict[str, Any]:
    market = data.get("market_data") or {}

    def _in_currency(key: str) -> Any:
        value = market.get(key)
        return value.get(vs_currency) if isinstance(value, Mapping) else value

    description = data.get("description") or {}
    return {
        "id": data.get("id"),
        "symbol": str(data.get("symbol") or "").upper(),
        "name": data.get("name") or data.get("id"),
        "description": description.get("en", "") if isinstance(description, Mapping) else str(description),
        "current_price": _in_currency("current_price"),
        "market_cap": _in_currency("market_cap") or 0.0,
        "market_cap_rank": data.get("market_cap_rank"),
        "total_volume": _in_currency("total_volume") or 0.0,
        "ath": _in_currency("ath"),
        "price_change_percentage_24h": market.get("price_change_percentage_24h"),
        "price_change_percentage_7d": market.get("price_change_percentage_7d"),
        "price_change_percentage_30d": market.get("price_change_percentage_30d"),
        "circulating_supply": market.get("circulating_supply"),
        "total_supply": market.get("total_supply"),
        "max_supply": market.get("max_supply"),
    }


def build_candidate(
    row: Mapping[str, Any],
    history: Optional[PriceHistory] = None,
    detail: Optional[Mapping[str, Any]] = None,
) -> Candidate:
    """Merge a market row, optional history and optional detail into a Candidate."""
    merged: Dict[str, Any] = dict(row)
    if detail:
        merged.update({k: v for k, v in detail.items() if v not in (None, "")})
    history = history or PriceHistory()
    return Candidate(
        id=str(merged.get("id")),
        symbol=str(merged.get("symbol") or "").upper(),
        name=str(merged.get("name") or merged.get("id")),
        prices=history.price_values(),
        volumes=history.volume_values(),
        market_cap=merged.get("market_cap") or 0.0,
        volume_24h=merged.get("total_volume") or 0.0,
        circulating_supply=merged.get("circulating_supply"),
        total_supply=merged.get("total_supply"),
        max_supply=merged.get("max_supply"),
        rank=merged.get("market_cap_rank"),
        current_price=merged.get("current_price"),
        price_change_24h=merged.get("price_change_percentage_24h"),
        price_change_7d=merged.get("price_change_percentage_7d"),
        price_change_30d=merged.get("price_change_percentage_30d"),
        ath=merged.get("ath"),
        description=str(merged.get("description") or ""),
    )
