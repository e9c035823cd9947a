"""Periodic contribution (DCA) split across a composed allocation."""
from __future__ import annotations

import math
from dataclasses import replace
from typing import List, Sequence

from coin_scout.contracts import AllocationItem, Contribution
from coin_scout.exceptions import DataValidationError

DEFAULT_CADENCE = "Monthly"
ROUNDING_STEP_USD = 5.0
MIN_CONTRIBUTION_USD = 5.0


def contribution_amount(
    allocation_pct: float,
    budget: float,
    step: float = ROUNDING_STEP_USD,
    minimum: float = MIN_CONTRIBUTION_USD,
) -> float:
    """pct x budget rounded half-up to the nearest ``step``, never below ``minimum``."""
    raw = max(0.0, allocation_pct) * budget
    rounded = math.floor(raw / step + 0.5) * step
    return float(max(rounded, minimum))


def allocate_contributions(
    items: Sequence[AllocationItem],
    budget: float,
    cadence: str = DEFAULT_CADENCE,
) -> List[AllocationItem]:
    """Attach a Contribution to every item for a periodic ``budget`` in USD."""
    try:
        budget = float(budget)
    except (TypeError, ValueError):
        raise DataValidationError("contributions", "budget is not a number", field="budget", value=budget)
    if not math.isfinite(budget) or budget < 0:
        raise DataValidationError("contributions", "budget must be a non-negative amount", field="budget", value=budget)
    return [
        replace(item, contribution=Contribution(amount=contribution_amount(item.allocation_pct, budget), cadence=cadence))
        for item in items
    ]
