"""
Filters Module

Screens ranked candidates before satellite selection.
"""

# ============================================================================
# CANDIDATE FILTERS (from coin_scout.filters.candidates)
# ============================================================================
from coin_scout.filters.candidates import (
    FilterCriteria,
    drop_summary,
    filter_candidates,
    rejection_reason,
)

# ============================================================================
# PUBLIC API
# ============================================================================

__all__ = [
    "FilterCriteria",
    "drop_summary",
    "filter_candidates",
    "rejection_reason",
]
