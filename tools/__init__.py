"""
Tools Package
Pure helpers for the CareSync engine: dose scheduling, adherence
statistics, refill rules, prescription import and report rendering
"""

from .refill_monitor import (
    needs_refill,
    refill_threshold,
    medications_needing_refill
)

from .scheduler import (
    ScheduleGenerator,
    ScheduleEntry,
    UpcomingDose,
    schedule_generator,
    to_calendar_events
)

from .adherence_stats import (
    rate,
    summarize,
    trends,
    medication_stats
)


__all__ = [
    # Refill monitor
    "needs_refill",
    "refill_threshold",
    "medications_needing_refill",
    # Scheduler
    "ScheduleGenerator",
    "ScheduleEntry",
    "UpcomingDose",
    "schedule_generator",
    "to_calendar_events",
    # Statistics
    "rate",
    "summarize",
    "trends",
    "medication_stats",
]
