"""
Adherence Statistics
Read-only projections over adherence records: rate, daily trends and
per-medication stats
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional
from collections import OrderedDict
from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo

from config import settings


def _status(record: Any) -> str:
    if isinstance(record, Mapping):
        status = record.get("status")
    else:
        status = getattr(record, "status", None)
    return getattr(status, "value", status)


def percent(part: int, total: int) -> int:
    """Integer percent rounded half up; 0 when total is 0"""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)


def rate(records: Iterable[Any]) -> int:
    """Share of taken records as an integer percent"""
    records = list(records)
    taken = sum(1 for r in records if _status(r) == "taken")
    return percent(taken, len(records))


def summarize(records: Iterable[Any]) -> Dict[str, int]:
    """Counts by status plus the adherence rate"""
    records = list(records)
    total = len(records)
    taken = sum(1 for r in records if _status(r) == "taken")
    missed = sum(1 for r in records if _status(r) == "missed")
    skipped = sum(1 for r in records if _status(r) == "skipped")
    return {
        "rate": percent(taken, total),
        "total": total,
        "taken": taken,
        "missed": missed,
        "skipped": skipped,
    }


def record_date(record: Any, tz: Optional[ZoneInfo] = None) -> Optional[date]:
    """
    Calendar date of a record in the reference timezone.
    Uses taken_at, falling back to scheduled_time. Naive datetimes are UTC.
    """
    moment = getattr(record, "taken_at", None) or getattr(record, "scheduled_time", None)
    if moment is None:
        return None
    tz = tz or ZoneInfo(settings.REFERENCE_TIMEZONE)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def trends(
    records: Iterable[Any],
    window_days: Optional[int] = None,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Day buckets of adherence counts, ascending by date.

    Days without events are omitted; callers wanting a dense series
    must fill the gaps themselves.

    Args:
        records: Adherence records
        window_days: Only keep records dated within this many days of today
        now: Reference instant for the window (defaults to current UTC time)

    Returns:
        List of {date, taken, missed, total, rate}
    """
    tz = ZoneInfo(settings.REFERENCE_TIMEZONE)
    cutoff = None
    if window_days is not None:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now.astimezone(tz).date() - timedelta(days=window_days)

    buckets: Dict[date, Dict[str, int]] = {}
    for record in records:
        day = record_date(record, tz)
        if day is None or (cutoff is not None and day < cutoff):
            continue
        bucket = buckets.setdefault(day, {"taken": 0, "missed": 0, "total": 0})
        bucket["total"] += 1
        status = _status(record)
        if status == "taken":
            bucket["taken"] += 1
        elif status == "missed":
            bucket["missed"] += 1

    ordered = OrderedDict(sorted(buckets.items()))
    return [
        {
            "date": day.isoformat(),
            "taken": counts["taken"],
            "missed": counts["missed"],
            "total": counts["total"],
            "rate": percent(counts["taken"], counts["total"]),
        }
        for day, counts in ordered.items()
    ]


def medication_stats(records: Iterable[Any], medication_id: Optional[int] = None) -> Dict[str, int]:
    """Total, taken and rate for one medication's records"""
    if medication_id is not None:
        records = [r for r in records if r.medication_id == medication_id]
    else:
        records = list(records)
    taken = sum(1 for r in records if _status(r) == "taken")
    return {
        "total": len(records),
        "taken": taken,
        "rate": percent(taken, len(records)),
    }
