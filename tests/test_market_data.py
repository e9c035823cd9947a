"""CoinGecko provider tests with a fake requests session (no network)."""
import pytest
import requests

from coin_scout.config import Config
from coin_scout.exceptions import (
    AuthenticationError,
    DataFetchError,
    ProviderUnavailableError,
    RateLimitError,
)
from coin_scout.market_data import (
    CoinGeckoProvider,
    TTLCache,
    build_candidate,
    normalize_coin_detail,
    normalize_market_row,
)
from coin_scout.interfaces import PriceHistory


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Returns queued responses in order; an Exception entry is raised instead."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sleeps():
    return []


def _provider(session, sleeps, **overrides) -> CoinGeckoProvider:
    settings = dict(
        coingecko_base_url="https://cg.example/api/v3",
        coingecko_api_key="",
        http_max_retries=3,
        http_timeout_sec=5.0,
    )
    settings.update(overrides)
    return CoinGeckoProvider(Config(**settings), session=session, sleep=sleeps.append)


RAW_MARKET = {
    "id": "solana",
    "symbol": "sol",
    "name": "Solana",
    "current_price": 150.0,
    "market_cap": 7e10,
    "market_cap_rank": 5,
    "total_volume": 3e9,
    "circulating_supply": 4.6e8,
    "total_supply": 5.8e8,
    "max_supply": None,
    "ath": 260.0,
    "price_change_percentage_24h": 1.5,
    "price_change_percentage_7d_in_currency": -2.0,
    "price_change_percentage_30d_in_currency": 7.5,
}


# ══════════  HTTP retry  ═══════════════════════════════════════════


class TestHttpRetry:
    def test_list_markets_params_and_normalization(self, sleeps):
        session = FakeSession(FakeResponse(200, [RAW_MARKET, {"symbol": "noid"}]))
        rows = _provider(session, sleeps).list_markets("usd", page=2, per_page=50)

        assert len(rows) == 1
        assert rows[0]["symbol"] == "SOL"
        assert rows[0]["price_change_percentage_30d"] == 7.5
        call = session.calls[0]
        assert call["url"] == "https://cg.example/api/v3/coins/markets"
        assert call["params"]["page"] == 2
        assert call["params"]["per_page"] == 50
        assert call["params"]["order"] == "market_cap_desc"
        assert call["timeout"] == 5.0

    def test_second_call_served_from_cache(self, sleeps):
        session = FakeSession(FakeResponse(200, [RAW_MARKET]))
        provider = _provider(session, sleeps)
        provider.list_markets("usd")
        provider.list_markets("usd")
        assert len(session.calls) == 1
        assert provider.cache.stats()["hits"] == 1

    def test_rate_limit_honours_retry_after(self, sleeps):
        session = FakeSession(
            FakeResponse(429, headers={"Retry-After": "3"}),
            FakeResponse(200, [RAW_MARKET]),
        )
        rows = _provider(session, sleeps).list_markets("usd")
        assert len(rows) == 1
        assert sleeps == [3]

    def test_rate_limit_exhausted(self, sleeps):
        session = FakeSession(FakeResponse(429))
        with pytest.raises(RateLimitError):
            _provider(session, sleeps).list_markets("usd")
        assert sleeps == [2, 4]

    def test_client_error_not_retried(self, sleeps):
        session = FakeSession(FakeResponse(404))
        with pytest.raises(DataFetchError) as exc_info:
            _provider(session, sleeps).price_history("nope", "usd", 90)
        assert exc_info.value.status_code == 404
        assert len(session.calls) == 1
        assert sleeps == []

    def test_auth_error(self, sleeps):
        with pytest.raises(AuthenticationError):
            _provider(FakeSession(FakeResponse(401)), sleeps).coin_detail("solana")

    def test_server_errors_exhaust_retries(self, sleeps):
        session = FakeSession(FakeResponse(500))
        with pytest.raises(ProviderUnavailableError):
            _provider(session, sleeps).list_markets("usd")
        assert len(session.calls) == 3
        assert len(sleeps) == 2

    def test_timeouts_become_provider_unavailable(self, sleeps):
        session = FakeSession(requests.Timeout("read timed out"))
        with pytest.raises(ProviderUnavailableError):
            _provider(session, sleeps, http_max_retries=2).list_markets("usd")
        assert len(session.calls) == 2

    def test_recovers_after_transient_failure(self, sleeps):
        session = FakeSession(requests.ConnectionError("reset"), FakeResponse(200, [RAW_MARKET]))
        assert len(_provider(session, sleeps).list_markets("usd")) == 1
        assert sleeps == [2]

    def test_invalid_json_body(self, sleeps):
        session = FakeSession(FakeResponse(200, ValueError("Expecting value")))
        with pytest.raises(DataFetchError):
            _provider(session, sleeps).list_markets("usd")

    def test_api_key_header(self, sleeps):
        session = FakeSession(FakeResponse(200, [RAW_MARKET]))
        _provider(session, sleeps, coingecko_api_key="cg-key").list_markets("usd")
        assert session.calls[0]["headers"]["x-cg-demo-api-key"] == "cg-key"


# ══════════  Endpoints  ═══════════════════════════════════════════


class TestEndpoints:
    def test_price_history_skips_bad_pairs(self, sleeps):
        payload = {
            "prices": [[1, 100.0], [2, None], [3], "junk", [4, "x"], [5, 101.5]],
            "total_volumes": [[1, 10.0], [5, 12.0]],
        }
        session = FakeSession(FakeResponse(200, payload))
        history = _provider(session, sleeps).price_history("solana", "usd", 30)

        assert history.price_values() == (100.0, 101.5)
        assert history.volume_values() == (10.0, 12.0)
        assert session.calls[0]["url"].endswith("/coins/solana/market_chart")
        assert session.calls[0]["params"] == {"vs_currency": "usd", "days": 30}

    def test_history_not_an_object(self, sleeps):
        with pytest.raises(DataFetchError):
            _provider(FakeSession(FakeResponse(200, [1, 2])), sleeps).price_history("solana", "usd", 30)

    def test_markets_not_a_list(self, sleeps):
        with pytest.raises(DataFetchError):
            _provider(FakeSession(FakeResponse(200, {"error": "x"})), sleeps).list_markets("usd")

    def test_coin_detail_normalized(self, sleeps):
        payload = {
            "id": "solana",
            "symbol": "sol",
            "name": "Solana",
            "market_cap_rank": 5,
            "description": {"en": "Fast smart contract chain."},
            "market_data": {
                "current_price": {"usd": 150.0, "eur": 140.0},
                "market_cap": {"usd": 7e10},
                "total_volume": {"usd": 3e9},
                "ath": {"usd": 260.0},
                "price_change_percentage_30d": 7.5,
                "circulating_supply": 4.6e8,
                "max_supply": None,
            },
        }
        detail = _provider(FakeSession(FakeResponse(200, payload)), sleeps).coin_detail("solana")
        assert detail["symbol"] == "SOL"
        assert detail["description"] == "Fast smart contract chain."
        assert detail["current_price"] == 150.0
        assert detail["market_cap"] == 7e10
        assert detail["price_change_percentage_30d"] == 7.5
        assert detail["max_supply"] is None


# ══════════  Normalization  ═══════════════════════════════════════


class TestNormalization:
    def test_market_row_defaults(self):
        row = normalize_market_row({"id": "x"})
        assert row["name"] == "x"
        assert row["market_cap"] == 0.0
        assert row["total_volume"] == 0.0

    def test_detail_in_other_currency(self):
        detail = normalize_coin_detail({"id": "x", "market_data": {"current_price": {"eur": 2.0}}}, "eur")
        assert detail["current_price"] == 2.0

    def test_build_candidate_merges_detail(self):
        row = normalize_market_row(RAW_MARKET)
        history = PriceHistory(prices=((1.0, 10.0), (2.0, 11.0)), volumes=((1.0, 5.0),))
        candidate = build_candidate(row, history, detail={"description": "About Solana", "ath": None})

        assert candidate.id == "solana"
        assert candidate.rank == 5
        assert candidate.prices == (10.0, 11.0)
        assert candidate.volume_24h == 3e9
        assert candidate.description == "About Solana"
        assert candidate.ath == 260.0


class TestTTLCache:
    def test_expired_entries_evicted(self, monkeypatch):
        cache = TTLCache()
        now = [1000.0]
        monkeypatch.setattr("coin_scout.market_data.time.time", lambda: now[0])
        cache.put("k", {"v": 1})
        assert cache.get("k", ttl=60) == {"v": 1}
        now[0] += 61
        assert cache.get("k", ttl=60) is None
        assert cache.stats() == {"total_entries": 0, "hits": 1, "misses": 1}

    def test_clear(self):
        cache = TTLCache()
        cache.put("k", 1)
        cache.clear()
        assert cache.get("k", ttl=60) is None

    def test_put_purges_entries_past_max_age(self, monkeypatch):
        cache = TTLCache(max_age=100.0)
        now = [1000.0]
        monkeypatch.setattr("coin_scout.market_data.time.time", lambda: now[0])
        for i in range(5):
            cache.put(f"history:coin{i}", [i])
        now[0] += 101
        cache.put("history:fresh", [9])
        assert cache.stats()["total_entries"] == 1
        assert cache.get("history:fresh", ttl=100) == [9]

    def test_oldest_entry_evicted_at_capacity(self):
        cache = TTLCache(max_entries=3)
        for key in ("a", "b", "c"):
            cache.put(key, key)
        cache.put("a", "a2")
        cache.put("d", "d")
        assert cache.stats()["total_entries"] == 3
        assert cache.get("b", ttl=60) is None
        assert cache.get("a", ttl=60) == "a2"
        assert cache.get("d", ttl=60) == "d"
