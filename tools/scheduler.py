"""
Dose Schedule Generator
Turns active medications and a date range into virtual dose events
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta

from config import settings
from tools.refill_monitor import needs_refill


logger = logging.getLogger(__name__)


def doses_per_day(medication: Any) -> int:
    """times_per_day, treating unset or zero as once daily"""
    return getattr(medication, "times_per_day", None) or 1


@dataclass(frozen=True)
class ScheduleEntry:
    """A single expected dose; derived on demand and never stored"""
    medication_id: int
    dose_date: date
    occurrence_index: int
    scheduled_time: datetime
    window_end: datetime

    @property
    def key(self) -> Tuple[int, date, int]:
        return (self.medication_id, self.dose_date, self.occurrence_index)

    @property
    def entry_id(self) -> str:
        return f"{self.medication_id}-{self.dose_date.isoformat()}-{self.occurrence_index}"


@dataclass(frozen=True)
class UpcomingDose:
    """Approximate next dose for one medication"""
    medication_id: int
    medication_name: str
    dosage: str
    scheduled_time: datetime
    is_refill_due: bool


class ScheduleGenerator:
    """
    Deterministic calendar schedule.

    Day d, medication m taken k times a day gets doses at
    day_start_hour + i * (24 / k) for i in [0, k). Offsets that reach
    midnight roll onto the following calendar day.
    """

    def __init__(
        self,
        day_start_hour: Optional[int] = None,
        window_minutes: Optional[int] = None
    ):
        self.day_start_hour = settings.DAY_START_HOUR if day_start_hour is None else day_start_hour
        self.window_minutes = settings.DOSE_WINDOW_MINUTES if window_minutes is None else window_minutes

    def generate(
        self,
        active_meds: Iterable[Any],
        range_start: date,
        range_end: date,
        day_start_hour: Optional[int] = None
    ) -> List[ScheduleEntry]:
        """
        Build schedule entries for every date in [range_start, range_end].

        Args:
            active_meds: Medications (anything with id and times_per_day)
            range_start: First calendar date, inclusive
            range_end: Last calendar date, inclusive
            day_start_hour: Hour of the first daily dose

        Returns:
            Entries ordered by date, then medication id, then occurrence
        """
        start_hour = self.day_start_hour if day_start_hour is None else day_start_hour
        medications = sorted(active_meds, key=lambda m: m.id)
        window = timedelta(minutes=self.window_minutes)

        entries: List[ScheduleEntry] = []
        current = range_start
        while current <= range_end:
            midnight = datetime.combine(current, time(0, 0))
            for med in medications:
                k = doses_per_day(med)
                interval_hours = 24 / k
                for i in range(k):
                    # timedelta carries offsets >= 24h into the next date
                    offset_hours = math.floor(start_hour + i * interval_hours)
                    scheduled = midnight + timedelta(hours=offset_hours)
                    entries.append(ScheduleEntry(
                        medication_id=med.id,
                        dose_date=current,
                        occurrence_index=i,
                        scheduled_time=scheduled,
                        window_end=scheduled + window
                    ))
            current += timedelta(days=1)

        return entries

    def next_doses(
        self,
        active_meds: Iterable[Any],
        now: datetime,
        window_hours: float
    ) -> List[UpcomingDose]:
        """
        Coarse upcoming-dose estimate: one dose per medication at
        now + 24 / times_per_day hours, kept when inside the window.

        This does not line up with generate(); callers that need the
        real dose times must use the calendar schedule.
        """
        limit = now + timedelta(hours=window_hours)
        upcoming: List[UpcomingDose] = []

        for med in active_meds:
            next_time = now + timedelta(hours=24 / doses_per_day(med))
            if next_time > limit:
                continue
            upcoming.append(UpcomingDose(
                medication_id=med.id,
                medication_name=med.name,
                dosage=f"{med.dosage} {med.dosage_unit}".strip(),
                scheduled_time=next_time,
                is_refill_due=needs_refill(med)
            ))

        upcoming.sort(key=lambda d: (d.scheduled_time, d.medication_id))
        return upcoming


def to_calendar_events(
    entries: Iterable[ScheduleEntry],
    medications: Iterable[Any]
) -> List[Dict[str, Any]]:
    """Shape schedule entries as calendar events for the web portal"""
    by_id = {m.id: m for m in medications}
    events = []
    for entry in entries:
        med = by_id.get(entry.medication_id)
        if med is None:
            continue
        events.append({
            "id": entry.entry_id,
            "title": f"Take {med.name}",
            "start": entry.scheduled_time,
            "end": entry.window_end,
            "extendedProps": {
                "medicationId": med.id,
                "dosage": f"{med.dosage} {med.dosage_unit}".strip(),
                "status": "scheduled",
            },
        })
    return events


# Singleton instance
schedule_generator = ScheduleGenerator()
