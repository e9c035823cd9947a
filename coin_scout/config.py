"""
Configuration and constants for Coin Scout.
All runtime parameters (endpoints, keys, timeouts, cache TTLs) in one place.
Scoring weights and thresholds live in coin_scout.scoring_config.
"""
from dataclasses import dataclass, field
from typing import Optional
import os

from dotenv import load_dotenv

from coin_scout.exceptions import ConfigurationError

# Load .env early for Config defaults
load_dotenv()


def _get_config_value(key: str, default: str) -> str:
    """Get config value from the environment (.env already loaded)."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(key: str, default: int) -> int:
    raw = _get_config_value(key, str(default))
    try:
        return int(float(raw))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    raw = _get_config_value(key, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _env(key: str, default: str = ""):
    return field(default_factory=lambda: _get_config_value(key, default))


@dataclass
class Config:
    """Main configuration for Coin Scout.

    Every field is read from the environment when the instance is created,
    so tests can monkeypatch variables and build a fresh ``Config()``.
    """

    # Market data (CoinGecko)
    coingecko_base_url: str = _env("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3")
    coingecko_api_key: str = _env("COINGECKO_API_KEY", "")
    vs_currency: str = _env("VS_CURRENCY", "usd")

    # HTTP behaviour
    http_timeout_sec: float = field(default_factory=lambda: _env_float("HTTP_TIMEOUT_SEC", 20.0))
    http_max_retries: int = field(default_factory=lambda: _env_int("HTTP_MAX_RETRIES", 4))

    # Provider cache TTLs (seconds)
    cache_ttl_markets_sec: int = field(default_factory=lambda: _env_int("CACHE_TTL_MARKETS_SEC", 120))
    cache_ttl_coin_sec: int = field(default_factory=lambda: _env_int("CACHE_TTL_COIN_SEC", 600))
    cache_ttl_history_sec: int = field(default_factory=lambda: _env_int("CACHE_TTL_HISTORY_SEC", 86400))

    # Satellite advisory (OpenAI-compatible chat endpoint, Groq by default)
    advisory_api_key: str = _env("ADVISORY_API_KEY", "")
    advisory_base_url: str = _env("ADVISORY_BASE_URL", "https://api.groq.com/openai/v1")
    advisory_model: str = _env("ADVISORY_MODEL", "llama-3.1-70b-versatile")
    advisory_max_tokens: int = field(default_factory=lambda: _env_int("ADVISORY_MAX_TOKENS", 600))
    advisory_temperature: float = field(default_factory=lambda: _env_float("ADVISORY_TEMPERATURE", 0.2))
    advisory_timeout_sec: float = field(default_factory=lambda: _env_float("ADVISORY_TIMEOUT_SEC", 30.0))

    # Universe & run limits
    rank_limit: int = field(default_factory=lambda: _env_int("RANK_LIMIT", 100))
    portfolio_rank_limit: int = field(default_factory=lambda: _env_int("PORTFOLIO_RANK_LIMIT", 150))
    history_days: int = field(default_factory=lambda: _env_int("HISTORY_DAYS", 90))
    min_history_points: int = 30
    max_workers: int = field(default_factory=lambda: _env_int("MAX_WORKERS", 8))
    run_deadline_sec: float = field(default_factory=lambda: _env_float("RUN_DEADLINE_SEC", 60.0))

    log_level: str = _env("LOG_LEVEL", "INFO")

    def has_coingecko_key(self) -> bool:
        return bool(self.coingecko_api_key)

    def has_advisory_key(self) -> bool:
        return bool(self.advisory_api_key)

    def validate(self) -> None:
        """Reject settings the run cannot work with."""
        if self.http_max_retries < 1:
            raise ConfigurationError("HTTP_MAX_RETRIES", f"must be >= 1, got {self.http_max_retries}")
        if self.http_timeout_sec <= 0:
            raise ConfigurationError("HTTP_TIMEOUT_SEC", f"must be positive, got {self.http_timeout_sec}")
        if self.rank_limit < 1 or self.portfolio_rank_limit < 1:
            raise ConfigurationError("RANK_LIMIT", "rank limits must be >= 1")
        if self.history_days < self.min_history_points:
            raise ConfigurationError(
                "HISTORY_DAYS", f"need at least {self.min_history_points} days, got {self.history_days}"
            )
        if self.max_workers < 1:
            raise ConfigurationError("MAX_WORKERS", f"must be >= 1, got {self.max_workers}")

    def to_dict(self) -> dict:
        """Convert config to dictionary (secrets excluded)."""
        return {
            "coingecko_base_url": self.coingecko_base_url,
            "coingecko_key_configured": self.has_coingecko_key(),
            "vs_currency": self.vs_currency,
            "http_timeout_sec": self.http_timeout_sec,
            "http_max_retries": self.http_max_retries,
            "cache_ttl_markets_sec": self.cache_ttl_markets_sec,
            "cache_ttl_coin_sec": self.cache_ttl_coin_sec,
            "cache_ttl_history_sec": self.cache_ttl_history_sec,
            "advisory_base_url": self.advisory_base_url,
            "advisory_model": self.advisory_model,
            "advisory_key_configured": self.has_advisory_key(),
            "advisory_timeout_sec": self.advisory_timeout_sec,
            "rank_limit": self.rank_limit,
            "portfolio_rank_limit": self.portfolio_rank_limit,
            "history_days": self.history_days,
            "min_history_points": self.min_history_points,
            "max_workers": self.max_workers,
            "run_deadline_sec": self.run_deadline_sec,
        }


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global config instance."""
    global _config
    if _config is None:
        config = Config()
        config.validate()
        _config = config
    return _config


def reset_config() -> None:
    """Drop the cached instance so the next get_config() re-reads the environment."""
    global _config
    _config = None
