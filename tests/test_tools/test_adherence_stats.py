"""
Tests for Adherence Statistics
Tests rate rounding, status counts, daily trends and per-medication stats
"""

import pytest
from types import SimpleNamespace
from datetime import datetime, timedelta

from config import settings
from models import AdherenceStatus
from tools import adherence_stats
from tools.adherence_stats import percent, rate, summarize, trends, medication_stats, record_date


def make_record(status, taken_at=None, medication_id=1, scheduled_time=None):
    return SimpleNamespace(
        status=status,
        taken_at=taken_at,
        scheduled_time=scheduled_time or taken_at,
        medication_id=medication_id,
    )


def batch(taken=0, missed=0, skipped=0):
    moment = datetime(2026, 3, 10, 9, 0)
    return (
        [make_record("taken", moment) for _ in range(taken)]
        + [make_record("missed", moment) for _ in range(missed)]
        + [make_record("skipped", moment) for _ in range(skipped)]
    )


# =============================================================================
# Rate
# =============================================================================

class TestRate:
    """Tests for the adherence rate"""

    @pytest.mark.unit
    def test_empty_is_zero(self):
        assert rate([]) == 0

    @pytest.mark.unit
    def test_seven_of_ten(self):
        assert rate(batch(taken=7, missed=3)) == 70

    @pytest.mark.unit
    def test_one_of_three_rounds_down(self):
        assert rate(batch(taken=1, missed=1, skipped=1)) == 33

    @pytest.mark.unit
    def test_two_of_three_rounds_up(self):
        assert rate(batch(taken=2, missed=1)) == 67

    @pytest.mark.unit
    def test_half_rounds_up(self):
        # 12.5% -> 13
        assert percent(1, 8) == 13

    @pytest.mark.unit
    def test_enum_statuses(self):
        records = [
            make_record(AdherenceStatus.TAKEN, datetime(2026, 3, 10)),
            make_record(AdherenceStatus.MISSED, datetime(2026, 3, 10)),
        ]
        assert rate(records) == 50


class TestSummarize:
    """Tests for status counts"""

    @pytest.mark.unit
    def test_counts(self):
        assert summarize(batch(taken=5, missed=2, skipped=1)) == {
            "rate": 63,
            "total": 8,
            "taken": 5,
            "missed": 2,
            "skipped": 1,
        }

    @pytest.mark.unit
    def test_accepts_serialized_records(self):
        records = [{"status": "taken"}, {"status": "skipped"}]

        summary = summarize(records)

        assert summary["taken"] == 1
        assert summary["skipped"] == 1
        assert summary["rate"] == 50


# =============================================================================
# Trends
# =============================================================================

class TestTrends:
    """Tests for daily buckets"""

    @pytest.mark.unit
    def test_buckets_sorted_and_sparse(self):
        records = [
            make_record("taken", datetime(2026, 3, 12, 8, 0)),
            make_record("missed", datetime(2026, 3, 10, 8, 0)),
            make_record("taken", datetime(2026, 3, 10, 20, 0)),
            make_record("skipped", datetime(2026, 3, 12, 20, 0)),
        ]

        result = trends(records)

        assert result == [
            {"date": "2026-03-10", "taken": 1, "missed": 1, "total": 2, "rate": 50},
            {"date": "2026-03-12", "taken": 1, "missed": 0, "total": 2, "rate": 50},
        ]

    @pytest.mark.unit
    def test_window_drops_old_records(self):
        now = datetime(2026, 3, 31, 12, 0)
        records = [
            make_record("taken", now - timedelta(days=40)),
            make_record("taken", now - timedelta(days=2)),
        ]

        result = trends(records, window_days=30, now=now)

        assert [r["date"] for r in result] == ["2026-03-29"]

    @pytest.mark.unit
    def test_falls_back_to_scheduled_time(self):
        record = SimpleNamespace(status="missed", taken_at=None, scheduled_time=datetime(2026, 3, 1, 8, 0))

        assert trends([record])[0]["date"] == "2026-03-01"

    @pytest.mark.unit
    def test_reference_timezone(self, monkeypatch):
        monkeypatch.setattr(settings, "REFERENCE_TIMEZONE", "America/New_York")
        record = make_record("taken", datetime(2026, 3, 10, 3, 0))

        assert trends([record])[0]["date"] == "2026-03-09"

    @pytest.mark.unit
    def test_record_without_timestamps_ignored(self):
        record = SimpleNamespace(status="taken", taken_at=None, scheduled_time=None)

        assert record_date(record) is None
        assert trends([record]) == []


class TestMedicationStats:
    """Tests for per-medication stats"""

    @pytest.mark.unit
    def test_filters_by_medication(self):
        moment = datetime(2026, 3, 10)
        records = [
            make_record("taken", moment, medication_id=1),
            make_record("missed", moment, medication_id=1),
            make_record("taken", moment, medication_id=2),
        ]

        assert medication_stats(records, 1) == {"total": 2, "taken": 1, "rate": 50}
        assert medication_stats(records) == {"total": 3, "taken": 2, "rate": 67}

    @pytest.mark.unit
    def test_module_exports(self):
        assert adherence_stats.rate is rate
