"""
Refill Monitor
Single stock-sufficiency rule used wherever low stock is evaluated
"""

from typing import Any, Iterable, List, Optional

from config import settings


def refill_threshold(times_per_day: Optional[int], supply_days: Optional[int] = None) -> int:
    """Units covering roughly one week of doses"""
    days = settings.REFILL_SUPPLY_DAYS if supply_days is None else supply_days
    return max(times_per_day or 1, 1) * days


def needs_refill(medication: Any, supply_days: Optional[int] = None) -> bool:
    """True when remaining stock is at or below the refill threshold"""
    remaining = getattr(medication, "remaining_quantity", None) or 0
    return remaining <= refill_threshold(
        getattr(medication, "times_per_day", None), supply_days
    )


def medications_needing_refill(medications: Iterable[Any]) -> List[Any]:
    """Active medications whose stock has reached the threshold"""
    return [
        med for med in medications
        if getattr(med, "is_active", True) and needs_refill(med)
    ]
