"""Fallback tracking for portfolio runs.

Records whether the deterministic satellite selection replaced the
advisory plug-in during a run.
"""

import logging
from threading import Lock
from typing import List

logger = logging.getLogger(__name__)

_ADVISORY_FALLBACK_USED: bool = False
_ADVISORY_FALLBACK_REASONS: List[str] = []
_ADVISORY_LOCK: Lock = Lock()


def record_advisory_fallback(reason: str) -> None:
    """Record and log a switch from advisory satellites to the fallback selector.

    Fallbacks are logged at warning level so they are never silent.
    """
    global _ADVISORY_FALLBACK_USED, _ADVISORY_FALLBACK_REASONS
    with _ADVISORY_LOCK:
        _ADVISORY_FALLBACK_USED = True
        if reason:
            _ADVISORY_FALLBACK_REASONS.append(str(reason))
    logger.warning(f"FALLBACK TO DETERMINISTIC SATELLITES: {reason}")


def get_fallback_status() -> dict:
    """Get status of fallback usage for the current run."""
    with _ADVISORY_LOCK:
        return {
            "fallback_used": _ADVISORY_FALLBACK_USED,
            "fallback_count": len(_ADVISORY_FALLBACK_REASONS),
            "reasons": list(_ADVISORY_FALLBACK_REASONS[-10:]),
        }


def reset_fallback_state() -> None:
    """Reset fallback trackers at the start of a new run."""
    global _ADVISORY_FALLBACK_USED, _ADVISORY_FALLBACK_REASONS
    with _ADVISORY_LOCK:
        _ADVISORY_FALLBACK_USED = False
        _ADVISORY_FALLBACK_REASONS = []
