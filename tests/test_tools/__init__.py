"""
Test Tools Package
Tests for the tools module (scheduler, statistics, refill rule, prescription import)
"""

__all__ = [
    "test_scheduler",
    "test_adherence_stats",
    "test_refill_monitor",
    "test_prescription_import",
    "test_report_renderer",
]
