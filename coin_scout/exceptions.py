"""
Coin Scout Custom Exceptions
============================

Centralized exception hierarchy for scoring, allocation and data fetching.
All exceptions inherit from CoinScoutError for easy catching at boundaries.

Usage:
    from coin_scout.exceptions import DataFetchError, RateLimitError, InsufficientDataError

    try:
        history = provider.price_history(coin_id)
    except RateLimitError as e:
        logger.warning(f"Rate limited: {e.provider}, skipping {coin_id}")
    except DataFetchError as e:
        logger.error(f"Fetch failed: {e}")
"""

from typing import Optional, Any, Dict


class CoinScoutError(Exception):
    """Base exception for all Coin Scout errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Data Fetch Errors
# =============================================================================

class DataFetchError(CoinScoutError):
    """Error fetching data from the market-data provider."""

    def __init__(
        self,
        provider: str,
        coin_id: Optional[str] = None,
        reason: str = "Unknown error",
        status_code: Optional[int] = None,
        url: Optional[str] = None
    ):
        self.provider = provider
        self.coin_id = coin_id
        self.reason = reason
        self.status_code = status_code
        self.url = url

        msg = f"Data fetch failed from {provider}"
        if coin_id:
            msg += f" for {coin_id}"
        msg += f": {reason}"
        if status_code:
            msg += f" (HTTP {status_code})"

        super().__init__(msg, {
            "provider": provider,
            "coin_id": coin_id,
            "status_code": status_code
        })


class RateLimitError(DataFetchError):
    """API rate limit exceeded (HTTP 429)."""

    def __init__(
        self,
        provider: str,
        coin_id: Optional[str] = None,
        retry_after: Optional[int] = None
    ):
        self.retry_after = retry_after
        reason = "Rate limit exceeded"
        if retry_after:
            reason += f" (retry after {retry_after}s)"
        super().__init__(
            provider=provider,
            coin_id=coin_id,
            reason=reason,
            status_code=429
        )


class AuthenticationError(DataFetchError):
    """API authentication failed (HTTP 401/403)."""

    def __init__(self, provider: str, reason: str = "Invalid or missing API key"):
        super().__init__(
            provider=provider,
            reason=reason,
            status_code=401
        )


class ProviderUnavailableError(DataFetchError):
    """Provider is temporarily unavailable (HTTP 5xx or connection error)."""

    def __init__(self, provider: str, reason: str = "Service unavailable"):
        super().__init__(
            provider=provider,
            reason=reason,
            status_code=503
        )


# =============================================================================
# Data Validation Errors
# =============================================================================

class DataValidationError(CoinScoutError):
    """Input data failed validation checks."""

    def __init__(
        self,
        context: str,
        details: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        self.field = field
        self.value = value

        msg = f"Validation failed in {context}: {details}"
        if field:
            msg += f" (field={field}, value={value})"

        super().__init__(msg, {
            "context": context,
            "field": field,
            "value": str(value)[:100] if value is not None else None
        })


class InsufficientDataError(DataValidationError):
    """Not enough history points for scoring."""

    def __init__(self, coin_id: str, required: int, actual: int, context: str = "scoring"):
        super().__init__(
            context=context,
            details=f"Need {required} points, got {actual}",
            field="history_length",
            value=actual
        )
        self.coin_id = coin_id
        self.required = required
        self.actual = actual


# =============================================================================
# Advisory Errors
# =============================================================================

class AdvisoryError(CoinScoutError):
    """Error in the satellite-advisory plug-in."""

    def __init__(self, reason: str, recoverable: bool = True):
        self.reason = reason
        self.recoverable = recoverable
        super().__init__(f"Advisory failed: {reason}", {"recoverable": recoverable})


class AdvisoryUnavailableError(AdvisoryError):
    """Advisory service not configured, unreachable or timed out."""


class AdvisoryResponseError(AdvisoryError):
    """Advisory response is malformed or violates the allocation contract."""

    def __init__(self, reason: str, payload: Optional[Any] = None):
        self.payload = payload
        super().__init__(reason=reason, recoverable=True)


# =============================================================================
# Policy / Allocation / Pipeline Errors
# =============================================================================

class PolicyError(CoinScoutError):
    """Risk profile or user overrides cannot be resolved into a policy."""

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        super().__init__(f"Policy error for {setting}: {reason}", {"setting": setting})


class AllocationInvariantError(CoinScoutError):
    """Composed allocation violates the sum-to-one invariant.

    Raised after normalization; signals a programming error and is never
    silently re-clamped.
    """

    def __init__(self, total: float, tolerance: float):
        self.total = total
        self.tolerance = tolerance
        super().__init__(
            f"Allocation total {total:.4f} outside 1.0 ± {tolerance}",
            {"total": round(total, 6), "tolerance": tolerance},
        )


class PipelineError(CoinScoutError):
    """Error in pipeline execution."""

    def __init__(self, stage: str, reason: str, recoverable: bool = False):
        self.stage = stage
        self.recoverable = recoverable

        msg = f"Pipeline failed at {stage}: {reason}"
        super().__init__(msg, {
            "stage": stage,
            "recoverable": recoverable
        })


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(CoinScoutError):
    """Invalid or missing configuration."""

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        msg = f"Configuration error for {setting}: {reason}"
        super().__init__(msg, {"setting": setting})


# =============================================================================
# Utility Functions
# =============================================================================

def classify_http_error(status_code: int, provider: str, coin_id: Optional[str] = None) -> DataFetchError:
    """Convert HTTP status code to appropriate exception."""
    if status_code == 429:
        return RateLimitError(provider=provider, coin_id=coin_id)
    elif status_code in (401, 403):
        return AuthenticationError(provider=provider)
    elif status_code >= 500:
        return ProviderUnavailableError(provider=provider)
    else:
        return DataFetchError(
            provider=provider,
            coin_id=coin_id,
            reason="HTTP error",
            status_code=status_code
        )


def is_recoverable(exc: Exception) -> bool:
    """Check if an exception is recoverable (skip the item, keep the run)."""
    if isinstance(exc, (RateLimitError, ProviderUnavailableError)):
        return True
    if isinstance(exc, AdvisoryError):
        return exc.recoverable
    if isinstance(exc, DataValidationError):
        return True
    if isinstance(exc, DataFetchError):
        return exc.status_code is None or exc.status_code >= 500
    return False
